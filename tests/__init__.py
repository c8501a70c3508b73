"""Test suite for the document chat service.

Structure:
    - unit/: Isolated component tests with fakes for external services
    - integration/: HTTP-level tests against the FastAPI app
    - conftest.py: Shared fixtures (config, fake store, fake agent, client)

Run with: pytest tests/
Async tests run under pytest-asyncio in auto mode.
"""
