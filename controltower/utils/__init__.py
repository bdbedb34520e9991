"""Shared utilities (structured logging)."""
