"""Shared helpers: timezone conversion, time provider, async timeouts, request context."""
