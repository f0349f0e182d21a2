"""Adapters backed by external services."""
