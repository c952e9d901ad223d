"""Dashboard-side helpers that consume the relay endpoints."""
