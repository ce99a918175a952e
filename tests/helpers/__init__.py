"""
Test helper utilities for pmenvelope testing.

This module provides reusable utilities for:
- Generating synthetic concentration series
- Building events and configuration records
"""
