"""Placeholder tokens and their resolution against a data record.

A token is ``{{name}}``. Names resolve in this order:

1. standard identifiers (``firstName``, ``eventDate``...), matched after
   normalization and read from the record's camelCase or snake_case key;
2. an exact key on the record;
3. a record key whose normalized form matches the token's.

Nothing matched means :class:`UnresolvedPlaceholder`. In preview the raw token
stays on screen so the operator sees what is unbound; in export it renders as
an empty string.
"""
from __future__ import annotations

import re
import logging
from typing import Any, Iterable, Mapping, Optional

from badgeforge.canvas.errors import UnresolvedPlaceholder

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
CUSTOM_TEXT = "customText"

# canonical key -> accepted record aliases
STANDARD_FIELDS: dict[str, tuple[str, ...]] = {
    "firstName": ("first_name",),
    "lastName": ("last_name",),
    "middleName": ("middle_name",),
    "birthDate": ("birth_date", "dob"),
    "address": (),
    "city": (),
    "state": (),
    "zip": ("zip_code", "zipcode", "postal_code"),
    "phone": ("phone_number",),
    "email": ("email_address",),
    "eventName": ("event_name",),
    "eventDate": ("event_date",),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WS = re.compile(r"\s+")
_NOT_HEADER = re.compile(r"[^a-z0-9_]")


def normalize_field_name(name: str) -> str:
    return _NON_ALNUM.sub("", str(name).lower())


def normalize_header(header: str) -> str:
    """CSV header as stored on a record: lowercase, spaces to ``_``."""
    return _NOT_HEADER.sub("", _WS.sub("_", str(header).strip().lower()))


_STANDARD_BY_NORM = {normalize_field_name(k): k for k in STANDARD_FIELDS}


def make_token(name: str) -> str:
    return "{{" + str(name) + "}}"


def placeholder_name(content: str) -> Optional[str]:
    """Return the token name if ``content`` is exactly one token."""
    m = TOKEN_RE.fullmatch(str(content or "").strip())
    return m.group(1) if m else None


def tokens_in(content: str) -> list[str]:
    return TOKEN_RE.findall(str(content or ""))


def display_name(name: str) -> str:
    """``firstName`` / ``first_name`` -> ``First Name``."""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", str(name)).replace("_", " ")
    return " ".join(w.capitalize() for w in spaced.split())


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def resolve(token: str, record: Mapping[str, Any]) -> str:
    """Resolve one token (``{{name}}`` or a bare name) against ``record``."""
    name = placeholder_name(token) or str(token).strip()
    norm = normalize_field_name(name)

    standard = _STANDARD_BY_NORM.get(norm)
    if standard is not None:
        for key in (standard, *STANDARD_FIELDS[standard]):
            if key in record:
                return _text(record[key])

    if name in record:
        return _text(record[name])

    for key, value in record.items():
        if normalize_field_name(key) == norm:
            return _text(value)

    raise UnresolvedPlaceholder(name)


def render_text(content: str, record: Mapping[str, Any], preview: bool = False) -> str:
    """Substitute every token in ``content``; literal text passes through."""

    def _sub(m: re.Match) -> str:
        try:
            return resolve(m.group(1), record)
        except UnresolvedPlaceholder:
            if preview:
                return m.group(0)
            logger.debug("Unresolved placeholder %s rendered empty", m.group(0))
            return ""

    return TOKEN_RE.sub(_sub, str(content or ""))


def merge_bindable_fields(custom: Iterable[str]) -> list[str]:
    """Standard fields first, then custom names that are not aliases of them."""
    out = list(STANDARD_FIELDS)
    seen = {normalize_field_name(n) for n in out}
    for aliases in STANDARD_FIELDS.values():
        seen.update(normalize_field_name(a) for a in aliases)
    for name in custom:
        n = normalize_field_name(name)
        if not n or n in seen:
            continue
        seen.add(n)
        out.append(str(name))
    return out
