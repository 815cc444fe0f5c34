"""
Test suite for the country import pipeline.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_import_pipeline.py -v
"""
