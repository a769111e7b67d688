"""Shared infrastructure: database, cache, Redis, security and errors."""
