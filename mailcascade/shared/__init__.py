"""Shared cross-cutting helpers: enums, telemetry (logging), utils."""
