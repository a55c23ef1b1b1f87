"""Canonical object keys and cross-reference links.

Every function here is pure. Keys are case-insensitive: two names that differ
only by letter case, or only by one of the characters ``\\``, ``/`` and ``:``,
produce the same key and therefore collide in the graph.
"""

from __future__ import annotations

from typing import Optional, Union

from schemadoc.core.errors import LinkResolutionError
from schemadoc.models.schema import ObjectKind

KindLike = Union[ObjectKind, str]

_UNSAFE_CHARS = str.maketrans({"\\": "_", "/": "_", ":": "_"})

_PLURALS: dict[ObjectKind, str] = {
    ObjectKind.TABLE: "tables",
    ObjectKind.VIEW: "views",
    ObjectKind.INDEX: "indexes",
    ObjectKind.TRIGGER: "triggers",
    ObjectKind.PROCEDURE: "procedures",
    ObjectKind.FUNCTION: "functions",
    ObjectKind.PACKAGE: "packages",
    ObjectKind.SEQUENCE: "sequences",
    ObjectKind.COLUMN: "columns",
    ObjectKind.CONSTRAINT: "constraints",
}

# Kinds without a page of their own, documented together on a listing page.
LISTING_ONLY_KINDS = frozenset({ObjectKind.SEQUENCE})

# Kinds whose names are only unique below their parent object.
PARENT_SCOPED_KINDS = frozenset({ObjectKind.COLUMN})


def _kind_token(kind: KindLike) -> str:
    if isinstance(kind, ObjectKind):
        return kind.value
    return str(kind).lower()


def normalize_name(name: str) -> str:
    """Lower-case *name* and replace path-unsafe characters with ``_``."""
    return name.lower().translate(_UNSAFE_CHARS)


def canonical_key(kind: KindLike, name: str) -> str:
    """Return ``kind.name`` in canonical (lower-case, path-safe) form."""
    return f"{_kind_token(kind)}.{normalize_name(name)}"


def compound_key(parent_key: str, local_key: str) -> str:
    """Key of an object that is only unique below its parent."""
    return f"{parent_key}.{local_key}"


def object_key(
    kind: ObjectKind,
    name: str,
    parent_kind: Optional[ObjectKind] = None,
    parent_name: Optional[str] = None,
) -> str:
    """Key of an object, composed with its parent's key for parent-scoped kinds."""
    key = canonical_key(kind, name)
    if kind in PARENT_SCOPED_KINDS and parent_kind is not None and parent_name is not None:
        key = compound_key(canonical_key(parent_kind, parent_name), key)
    return key


def plural(kind: ObjectKind) -> str:
    return _PLURALS[kind]


def anchor_prefix(kind: ObjectKind) -> str:
    """Three-letter prefix of in-page anchors for children of this kind."""
    return kind.value[:3]


def check_anchor_prefixes() -> dict[str, ObjectKind]:
    """Verify that no two kinds share an anchor prefix.

    Returns the prefix → kind mapping, raises ValueError on a clash.
    """
    seen: dict[str, ObjectKind] = {}
    for kind in ObjectKind:
        prefix = anchor_prefix(kind)
        if prefix in seen:
            raise ValueError(
                f"kinds {seen[prefix].name} and {kind.name} share anchor prefix {prefix!r}"
            )
        seen[prefix] = kind
    return seen


def link_for(
    kind: ObjectKind,
    name: Optional[str],
    parent_kind: Optional[ObjectKind] = None,
    parent_name: Optional[str] = None,
) -> str:
    """Return the cross-reference address of an object.

    Precedence, first match wins:

    1. resolved parent - ``{parentKind}-{parentName}.html#{kind3}-{name}``;
    2. listing-only kind - ``{kindPlural}-list.html#{NAME}``;
    3. default - ``{kind}-{name}.html``.

    Spaces never survive into a link, they become ``_``.

    The parent name goes through normalize_name(), not just lower-casing, so
    ``\\``, ``/`` and ``:`` become ``_`` exactly as in the parent's own page
    name. For such parent names the link therefore differs from one built
    by lower-casing alone, which would point at a page that does not exist.

    Raises:
        LinkResolutionError: when *name* is missing.
    """
    if not name:
        raise LinkResolutionError(_kind_token(kind), name)

    if parent_kind is not None and parent_name:
        link = (
            f"{_kind_token(parent_kind)}-{normalize_name(parent_name)}.html"
            f"#{anchor_prefix(kind)}-{normalize_name(name)}"
        )
    elif kind in LISTING_ONLY_KINDS:
        link = f"{plural(kind)}-list.html#{name.upper()}"
    else:
        link = f"{_kind_token(kind)}-{normalize_name(name)}.html"
    return link.replace(" ", "_")


check_anchor_prefixes()
