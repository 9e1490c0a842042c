"""Command-line interface for stlpreview."""
