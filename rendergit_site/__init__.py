"""Render a git repository's history, files and refs as static HTML pages."""

__version__ = "0.1.0"
