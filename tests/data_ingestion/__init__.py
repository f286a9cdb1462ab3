"""Tests for the data_ingestion package."""
