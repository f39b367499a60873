"""Command-line tools for the Home Assistant collector."""
