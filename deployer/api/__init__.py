"""Read-only HTTP API over deployment records."""
