"""Recommender module for the extension recommender.

This module produces the "other" recommendations list:
- Executable-based tips pooled by case-insensitive extension id
- Remote workspace matches resolved from repository fingerprints
- Cached remote matches with a fourteen day lifetime
- Merging, allow-list filtering and seeded shuffling
"""
