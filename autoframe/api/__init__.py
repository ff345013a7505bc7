"""HTTP API for autoframe."""
