"""
Tests for the database package.

This package contains tests for:
- Connection settings and the store handle
- Entity catalog and dependency resolution
- Schema materialization
- Seed loading
- Verification probe
"""
