"""Builders for Drive search-query predicates."""

from typing import Iterable, Optional

from common.types import TypeTag


def quote(value: str) -> str:
    """
    Quote a string literal for the Drive query language.

    Args:
        value: Raw literal

    Returns:
        Single-quoted literal with backslashes and quotes escaped
    """
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def type_predicate(type_tags: Iterable[TypeTag]) -> Optional[str]:
    """
    OR together one equality test per type tag.

    Returns None for an empty tag set, meaning "match any type".
    """
    clauses = [f"mimeType = {quote(TypeTag(tag).value)}" for tag in type_tags]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return "(" + " or ".join(clauses) + ")"


def in_parent(parent_id: str) -> str:
    return f"{quote(parent_id)} in parents"


def name_contains(fragment: str) -> str:
    return f"name contains {quote(fragment)}"


def name_equals(name: str) -> str:
    return f"name = {quote(name)}"


def has_property(key: str, value: str) -> str:
    return f"properties has {{ key={quote(key)} and value={quote(value)} }}"


def not_trashed() -> str:
    return "trashed = false"


def all_of(*predicates: Optional[str]) -> Optional[str]:
    """AND together the non-empty predicates; None when nothing remains."""
    parts = [p for p in predicates if p]
    if not parts:
        return None
    return " and ".join(parts)


def build_query(
    type_tags: Iterable[TypeTag] = (),
    query: Optional[str] = None,
    parent_id: Optional[str] = None,
) -> Optional[str]:
    """
    Build the full list query.

    Args:
        type_tags: Tags combined with OR; empty means any type
        query: Extra caller-supplied predicate combined with AND
        parent_id: Restrict to direct children of this folder

    Returns:
        Query string, or None for an unfiltered listing
    """
    return all_of(
        type_predicate(type_tags),
        in_parent(parent_id) if parent_id else None,
        query.strip() if query and query.strip() else None,
    )
