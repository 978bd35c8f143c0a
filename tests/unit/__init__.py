"""Unit tests for individual components in isolation.

Ensures fast execution with minimal dependencies.

Coverage:
    - streaming/: Frame decoding across chunk boundaries
    - parsing/: Text extraction, normalization, and caching
    - providers/: Request building and response decoding
    - agent/: Configuration and context assembly

Uses mocks for external services when needed. Follows single responsibility
per test function. Leverages pytest-check for multiple assertions per test.
"""
