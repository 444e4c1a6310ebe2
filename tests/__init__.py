"""Tests for the extension recommender."""
