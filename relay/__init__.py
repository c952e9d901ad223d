"""Crisis relay: cached proxy endpoints for open crisis datasets."""
