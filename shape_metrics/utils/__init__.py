"""Shared utilities: volume I/O and configuration."""
