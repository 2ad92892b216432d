"""Core shape comparison modules."""
