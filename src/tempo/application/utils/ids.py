"""Identifier generation."""

from ulid import ULID


def generate_id(prefix: str) -> str:
    """Sortable unique id, e.g. `rev_01HV...`."""
    return f"{prefix}_{ULID()}"
