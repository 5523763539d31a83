"""Helpers shared by the content and network domains."""
