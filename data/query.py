# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Query values and the reversible query-to-filename codec.

A :class:`Query` is a relative API path plus a parameter mapping.  Two
queries built from the same path and the same parameters compare equal no
matter what order the parameters were supplied in, because the parameters
are stored sorted by name.

``encode_query`` turns a query into a token that is safe to use as a file
name (lower-case base32, no padding), and ``decode_query`` reverses it::

    from data.query import Query, encode_query, decode_query

    q = Query.build("players", {"page": 2, "countries": "se"})
    token = encode_query(q)
    assert decode_query(token) == q
"""

from __future__ import annotations

import base64
import binascii
import urllib.parse
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Query value
# ---------------------------------------------------------------------------

def _param_text(value: Any) -> str:
    """Render a parameter value the way the remote service expects it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class Query:
    """An immutable request description: relative path plus parameters.

    Attributes:
        path: Path relative to the API base, e.g. ``"player/123/scores"``.
        params: ``(name, value)`` pairs sorted by name.  Values are text.
    """

    path: str
    params: tuple[tuple[str, str], ...] = field(default=())

    @classmethod
    def build(cls, path: str, params: dict[str, Any] | None = None) -> Query:
        """Create a query, dropping ``None`` values and sorting parameters."""
        pairs = tuple(sorted(
            (name, _param_text(value))
            for name, value in (params or {}).items()
            if value is not None
        ))
        return cls(path=path.strip("/"), params=pairs)

    def param_dict(self) -> dict[str, str]:
        return dict(self.params)

    def with_params(self, **changes: Any) -> Query:
        """Return a copy with *changes* merged into the parameters."""
        merged: dict[str, Any] = self.param_dict()
        merged.update(changes)
        return Query.build(self.path, merged)

    def canonical(self) -> str:
        """Return the deterministic ``path?name=value&...`` form."""
        if not self.params:
            return self.path
        return f"{self.path}?{urllib.parse.urlencode(self.params)}"

    @classmethod
    def from_canonical(cls, text: str) -> Query:
        """Parse the output of :meth:`canonical` back into a query."""
        path, _, query_string = text.partition("?")
        pairs = urllib.parse.parse_qsl(query_string, keep_blank_values=True)
        return cls(path=path, params=tuple(sorted(pairs)))

    def __str__(self) -> str:
        return self.canonical()


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def encode_query(query: Query) -> str:
    """Encode *query* into a filename-safe token.

    The token uses only ``a-z`` and ``2-7``, so it is also collision free on
    case-insensitive filesystems.
    """
    raw = base64.b32encode(query.canonical().encode("utf-8")).decode("ascii")
    return raw.rstrip("=").lower()


def decode_query(token: str) -> Query:
    """Inverse of :func:`encode_query`.

    Raises:
        ValueError: If *token* was not produced by :func:`encode_query`.
    """
    padded = token.upper() + "=" * (-len(token) % 8)
    try:
        text = base64.b32decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(f"Not a query token: {token!r}") from exc
    return Query.from_canonical(text)
