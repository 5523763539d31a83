"""Clips: short videos with likes and threaded comments."""
