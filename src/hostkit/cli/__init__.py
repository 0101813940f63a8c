"""HostKit CLI."""
