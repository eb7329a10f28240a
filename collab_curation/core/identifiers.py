"""Virtual identifiers for collaborations that may not exist yet.

A curator can pick a template in community or local mode before any
collaboration row backs that choice.  Such picks are represented by a
composite string:

* ``community_<template_id>``
* ``local_<template_id>_<city with underscores>``

Anything else is treated as the opaque id of a real collaboration row.
Private collaborations have no virtual form.

The underscore encoding cannot tell a space apart from an underscore that
was part of the city name, so :func:`encode_local` refuses such cities.
Channels that only carry strings (the local mirror) use the token form from
:func:`encode_token`, which keeps the city verbatim.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

COMMUNITY_PREFIX = "community_"
LOCAL_PREFIX = "local_"
TOKEN_SEPARATOR = "|"

Kind = Literal["community", "local", "real"]


class IdentifierDecodeError(ValueError):
    """Raised when a virtual identifier is malformed."""


@dataclass(frozen=True)
class DecodedIdentifier:
    """Structured form of a selection identifier."""

    kind: Kind
    value: str
    template_id: str | None = None
    city: str | None = None

    @property
    def is_virtual(self) -> bool:
        return self.kind != "real"


def encode_community(template_id: str) -> str:
    _check_template_id(template_id)
    return f"{COMMUNITY_PREFIX}{template_id}"


def encode_local(template_id: str, city: str) -> str:
    """Return the virtual identifier for ``template_id`` in ``city``.

    Whitespace runs in ``city`` become single underscores.  ``city`` must not
    contain a literal underscore since decoding would turn it into a space.
    """
    _check_template_id(template_id)
    city = city.strip()
    if not city:
        raise ValueError("city must not be empty")
    if "_" in city:
        raise ValueError(f"city {city!r} must not contain underscores")
    slug = re.sub(r"\s+", "_", city)
    return f"{LOCAL_PREFIX}{template_id}_{slug}"


def decode(identifier: str) -> DecodedIdentifier:
    """Decode ``identifier`` into a :class:`DecodedIdentifier`.

    Raises
    ------
    IdentifierDecodeError
        If ``identifier`` carries a virtual prefix but is malformed.

    """
    if identifier.startswith(LOCAL_PREFIX):
        segments = identifier.split("_")
        if len(segments) < 3 or not segments[1] or not all(segments[2:]):
            raise IdentifierDecodeError(f"malformed local identifier {identifier!r}")
        return DecodedIdentifier(
            kind="local",
            value=identifier,
            template_id=segments[1],
            city=" ".join(segments[2:]),
        )
    if identifier.startswith(COMMUNITY_PREFIX):
        template_id = identifier[len(COMMUNITY_PREFIX):]
        if not template_id:
            raise IdentifierDecodeError(
                f"malformed community identifier {identifier!r}"
            )
        return DecodedIdentifier(
            kind="community", value=identifier, template_id=template_id
        )
    if not identifier:
        raise IdentifierDecodeError("empty identifier")
    return DecodedIdentifier(kind="real", value=identifier)


def template_of(identifier: str) -> str | None:
    """Return the template id implied by a virtual ``identifier``, if any."""
    try:
        return decode(identifier).template_id
    except IdentifierDecodeError:
        return None


# ----------------------------------------------------------------------
# Token form for string-only channels
# ----------------------------------------------------------------------
def encode_token(identifier: str) -> str:
    """Serialise ``identifier`` with the reserved ``|`` separator.

    ``community|<template>``, ``local|<template>|<city>`` or ``real|<id>``.
    """
    decoded = decode(identifier)
    if decoded.kind == "real":
        parts = [decoded.kind, decoded.value]
    elif decoded.kind == "community":
        parts = [decoded.kind, decoded.template_id]
    else:
        parts = [decoded.kind, decoded.template_id, decoded.city]
    if any(TOKEN_SEPARATOR in p for p in parts[1:]):
        raise ValueError(f"{identifier!r} contains the reserved separator")
    return TOKEN_SEPARATOR.join(parts)


def decode_token(token: str) -> str:
    """Turn a token back into a selection identifier.

    Strings without the separator are treated as plain identifiers so that
    mirrors written before tokens existed can still be restored.
    """
    if TOKEN_SEPARATOR not in token:
        decode(token)
        return token
    kind, _, rest = token.partition(TOKEN_SEPARATOR)
    try:
        if kind == "real" and rest:
            return rest
        if kind == "community" and rest:
            return encode_community(rest)
        if kind == "local":
            template_id, _, city = rest.partition(TOKEN_SEPARATOR)
            if template_id and city:
                return encode_local(template_id, city)
    except ValueError as exc:
        raise IdentifierDecodeError(str(exc)) from exc
    raise IdentifierDecodeError(f"malformed token {token!r}")


def _check_template_id(template_id: str) -> None:
    if not template_id or "_" in template_id:
        raise ValueError(f"invalid template id {template_id!r}")
