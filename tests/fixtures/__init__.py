"""Test fixtures for pytest.

Test-only entities and payloads live in ``tests.fixtures.models``.
"""
