"""Test suite for hitclue.

Test organization:
- fixtures/: Mock hit generators and reference computations
- unit/: Unit tests for individual modules

Run tests with:
    pytest tests/
    pytest tests/unit/
    pytest tests/ -v --tb=short
"""
