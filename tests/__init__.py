"""
Tests for the EventHive store bootstrap.

Tests run against temporary SQLite files; no server is needed.
"""
