"""HTTP API for the discourse-near service."""
