"""Request-level middleware (logging, timing, rate limits)."""
