"""Shared helpers for threadfeed tests."""
