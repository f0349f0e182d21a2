"""Optional integrations with external services."""
