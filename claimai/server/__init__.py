"""HTTP API for claimai."""
