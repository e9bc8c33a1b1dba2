"""Command-line interfaces: server configuration loading and the admin CLI."""
