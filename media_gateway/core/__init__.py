"""Core infrastructure: configuration, logging, errors, rate limiting."""
