"""Shared utilities for outline-manager."""
