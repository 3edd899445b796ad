"""Idempotent payments HTTP service."""
