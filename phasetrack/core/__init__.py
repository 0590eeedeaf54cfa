"""Core cross-cutting types (exceptions)."""
