"""HTTP API for the handoff queue."""
