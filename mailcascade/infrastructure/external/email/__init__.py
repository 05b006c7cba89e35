"""Email provider integrations: vault, OAuth state, token refresh, senders."""
