"""Unit tests for individual components in isolation.

Ensures fast execution with minimal dependencies.

Coverage:
    - errors: classification and localized messages
    - config: environment loading and validation
    - store/: OpenAI adapter against a mocked client, store holder policy
    - db/: repository against a temporary SQLite database
    - services/: upload pipeline and chat orchestrator
    - agent/: Agent configuration and event filtering

Uses fakes and mocks for external services. Leverages pytest-check for
multiple assertions per test.
"""
