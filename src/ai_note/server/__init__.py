"""HTTP API consumed by the todo panel."""
