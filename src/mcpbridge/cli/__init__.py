"""Command-line interface for mcpbridge."""
