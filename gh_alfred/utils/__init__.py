"""Utility helpers for gh-alfred."""
