"""
Test suite for the maintenance import service.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_reconciliation_service.py -v
"""
