"""
Test suite for the Discord MultiHost system.

This package contains tests organized by type:
- Unit tests for individual components
- Integration tests for the coordinator behind the control API
- Test fixtures and utilities
"""
