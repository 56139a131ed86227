"""Server-sent events transport."""
