"""Data models package.

Public surface area - import from here rather than from sub-modules directly.
"""

from schemadoc.models.keys import (
    LISTING_ONLY_KINDS,
    PARENT_SCOPED_KINDS,
    anchor_prefix,
    canonical_key,
    check_anchor_prefixes,
    compound_key,
    link_for,
    normalize_name,
    object_key,
    plural,
)
from schemadoc.models.schema import (
    Attribute,
    AttributeRow,
    BuildReport,
    DuplicateKeyPolicy,
    FrozenSchemaObject,
    ObjectKind,
    SchemaObject,
)

__all__ = [
    # Enums
    "ObjectKind",
    "DuplicateKeyPolicy",
    # Entities
    "Attribute",
    "AttributeRow",
    "SchemaObject",
    "FrozenSchemaObject",
    "BuildReport",
    # Keys and links
    "LISTING_ONLY_KINDS",
    "PARENT_SCOPED_KINDS",
    "anchor_prefix",
    "canonical_key",
    "check_anchor_prefixes",
    "compound_key",
    "link_for",
    "normalize_name",
    "object_key",
    "plural",
]
