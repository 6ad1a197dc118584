"""Emoji search test suite."""
