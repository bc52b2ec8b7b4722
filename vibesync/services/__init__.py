"""Sync services."""
