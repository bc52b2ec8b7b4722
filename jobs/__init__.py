"""Dramatiq background jobs."""
