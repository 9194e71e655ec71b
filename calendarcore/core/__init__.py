"""Ambient concerns and civil date utilities."""
