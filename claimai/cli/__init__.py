"""Command-line interface for claimai."""
