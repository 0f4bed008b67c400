"""HTTP wiring: request dependencies."""
