"""Tests for the scripts package."""
