"""HTTP API for job submission."""
