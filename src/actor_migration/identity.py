"""User identity value object and IP canonicalisation."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass

_IPV4_DOTTED = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


@dataclass(frozen=True)
class UserIdentity:
    """A (user id, user name) pair as stored inline by the legacy schema.

    ``id == 0`` denotes an unregistered identity, usually an IP address.
    ``domain`` names the wiki/database the identity belongs to; ``None``
    means the local domain.
    """

    id: int
    name: str
    domain: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 0:
            raise ValueError(f"User id must be a non-negative integer, got {self.id!r}")
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("User name must be a non-empty string")

    @property
    def is_registered(self) -> bool:
        return self.id != 0


def sanitize_ip(name: str) -> str:
    """Return the canonical form of an IP address, or ``name`` unchanged.

    IPv4 octets lose leading zeros (``010.000.000.001`` → ``10.0.0.1``).
    IPv6 addresses are expanded to eight upper-case groups without leading
    zeros (``2001:db8::1`` → ``2001:DB8:0:0:0:0:0:1``). Surrounding
    whitespace is always trimmed.
    """
    value = name.strip()
    if _IPV4_DOTTED.match(value):
        octets = [str(int(part)) for part in value.split(".")]
        if all(int(o) <= 255 for o in octets):
            return ".".join(octets)
        return value
    if ":" not in value:
        return value
    try:
        address = ipaddress.IPv6Address(value)
    except ValueError:
        return value
    # Zone-scoped addresses have no canonical form.
    if address.scope_id is not None:
        return value
    return ":".join(format(int(group, 16), "X") for group in address.exploded.split(":"))


__all__ = ["UserIdentity", "sanitize_ip"]
