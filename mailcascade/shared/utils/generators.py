"""Primary key generation for integration and delivery log rows."""

from cuid2 import cuid_wrapper

_next_cuid = cuid_wrapper()


def generate_cuid() -> str:
    """New CUID2 string id."""
    return str(_next_cuid())
