"""Shared utilities."""

from showroom_kernel.utils.hashing import hash_payload

__all__ = ["hash_payload"]
