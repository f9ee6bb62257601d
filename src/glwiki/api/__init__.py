"""JSON API server."""
