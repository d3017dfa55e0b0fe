"""
Identifier generation for hybridrag.

Two kinds of ids exist:
- random hex32 ids for errors and spans
- deterministic hex32 chunk ids, so re-ingesting identical content
  lands on the same key
"""

import hashlib
import re
import secrets


_HEX32 = re.compile(r"^[0-9a-f]{32}$")


def generate_id() -> str:
    """Random 32 char hex id."""
    return secrets.token_hex(16)


def stable_chunk_id(document_id: str, chunk_index: int, text: str) -> str:
    """
    Deterministic chunk id.

    First 16 bytes of SHA-256 over ``"{document_id}:{chunk_index}:{text}"``,
    rendered as 32 lowercase hex chars.

    Examples:
        >>> stable_chunk_id("doc", 0, "hello") == stable_chunk_id("doc", 0, "hello")
        True
    """
    raw = f"{document_id}:{chunk_index}:{text}".encode("utf-8")
    return hashlib.sha256(raw).digest()[:16].hex()


def is_valid_id(value: str) -> bool:
    """True for a 32 char lowercase hex id."""
    return bool(value) and bool(_HEX32.match(value))
