"""
Command-line interface for threadfeed.
"""

from threadfeed.cli.app import app

__all__ = ["app"]
