"""Test package for Paper Chat.

Provides test coverage for all components with unit tests for isolated
logic and integration tests for workflows.

Structure:
    - unit/: Individual function and class tests
    - integration/: End-to-end workflow tests

Provider traffic is served by httpx.MockTransport; no network access needed.
Leverages pytest with pytest-check for soft assertions.
"""
