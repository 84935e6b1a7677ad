"""Tests for core exceptions."""
