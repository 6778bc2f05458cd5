"""
Simonkey Progress Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures and configuration
    └── unit/                # Unit tests (isolated, no external dependencies)

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run with coverage
    pytest backend/tests/ --cov=simonkey --cov-report=html
"""
