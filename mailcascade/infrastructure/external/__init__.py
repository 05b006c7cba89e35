"""External integrations (email providers)."""
