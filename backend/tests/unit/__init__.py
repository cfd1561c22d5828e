"""
Unit Tests Package for AI Job Master

This package contains isolated unit tests for individual functions and
services. Provider SDKs and HTTP calls are mocked; services that need a
session use the in-memory SQLite fixture from conftest.

Test Organization:
- test_core.py: cache, encryption and security helpers
- test_sanitization.py: prompt-injection and field sanitisation
- test_llm.py: prompt builders, model names, providers and model catalog
- test_tracking.py: usage limits and activity counters
- test_content_services.py: message ids, misuse detection, email parsing,
  history export, resume parsing and payments

Usage:
    # Run all unit tests
    pytest backend/tests/unit/

    # Run with coverage
    pytest backend/tests/unit/ --cov=app --cov-report=html
"""
