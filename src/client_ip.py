"""
Client IP resolution and privacy-preserving hashing.
"""

import hashlib
from typing import Optional, Sequence, Union

IPV4_MAPPED_PREFIX = "::ffff:"


def _first_entry(value: str) -> str:
    for part in value.split(","):
        part = part.strip()
        if part:
            return part
    return ""


def normalize_ip(raw_ip: Optional[str]) -> str:
    """Canonicalize a single address candidate. Returns "" when nothing usable is left."""
    if not raw_ip:
        return ""
    candidate = _first_entry(raw_ip)
    if candidate.lower().startswith(IPV4_MAPPED_PREFIX):
        candidate = candidate[len(IPV4_MAPPED_PREFIX):]
    return candidate


def resolve_client_ip(
    forwarded_for: Union[str, Sequence[str], None],
    remote_addr: Optional[str] = None
) -> str:
    """
    Pick the client address for a request.

    Args:
        forwarded_for: Raw X-Forwarded-For value, or the list of values when
            the header was sent more than once
        remote_addr: Socket peer address, used when no forwarded entry exists

    Returns:
        Normalized address, or "" if neither source yields one
    """
    if isinstance(forwarded_for, str):
        forwarded_for = [forwarded_for]

    for value in forwarded_for or ():
        if not isinstance(value, str):
            continue
        candidate = normalize_ip(value)
        if candidate:
            return candidate

    return normalize_ip(remote_addr)


class IpHasher:
    """Salted one-way digest of client addresses."""

    def __init__(self, salt: str):
        if not salt:
            raise ValueError("IP hash salt must be a non-empty string")
        self._salt = salt.encode("utf-8")

    def hash(self, ip: Optional[str]) -> Optional[str]:
        """Return sha256(ip + salt) as hex, or None for an empty address."""
        if not ip:
            return None
        digest = hashlib.sha256()
        digest.update(ip.encode("utf-8"))
        digest.update(self._salt)
        return digest.hexdigest()

    def __repr__(self) -> str:
        return "IpHasher(salt=**********)"
