"""Utility modules for the ingestion engine.

Provides shared utilities for:
- Text cleaning and HTML sanitization
- Date/time parsing (Spanish formats)
- URL resolution
- Named field transforms
- Event deduplication
"""
