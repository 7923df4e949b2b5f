"""HTTP API for remote page hosts."""
