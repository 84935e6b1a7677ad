"""
Tests for the bootstrap orchestrator.

This package contains tests for:
- State machine and phase models
- End-to-end bootstrap runs
- Command-line interface
"""
