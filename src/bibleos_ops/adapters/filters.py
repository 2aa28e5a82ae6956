"""Filter lookup language shared by all adapters.

Filters are plain dicts.  A key is a column name, optionally followed by
``__<lookup>``; the value is the operand.  Without a lookup the filter is
an equality test.

    {"company_id": cid}                    company_id = cid
    {"status__neq": "resolved"}            status IS DISTINCT FROM 'resolved'
    {"submitted_at__lte": cutoff}          submitted_at <= cutoff
    {"task_id__in": ["a", "b"]}            task_id IN ('a', 'b')
    {"next_review_at__not_null": True}     next_review_at IS NOT NULL
    {"author_id__is": None}                author_id IS NULL

``neq`` is NULL-safe on every adapter: a NULL column value counts as
"not equal".  Parsing happens before any I/O so a typo in a lookup name
fails fast with ``ValueError``.
"""

from typing import Any, NamedTuple

LOOKUPS: frozenset[str] = frozenset(
    {"eq", "neq", "lt", "lte", "gt", "gte", "in", "is", "not_null"}
)


class Condition(NamedTuple):
    """One parsed filter condition."""

    column: str
    lookup: str
    value: Any


def parse_filters(filters: dict[str, Any] | None) -> list[Condition]:
    """Split ``column__lookup`` keys into ``Condition`` tuples.

    Raises:
        ValueError: If a lookup is unknown or an ``in`` operand is not a
            list, tuple or set.
    """
    conditions: list[Condition] = []
    for key, value in (filters or {}).items():
        column, sep, lookup = key.partition("__")
        if not sep:
            lookup = "eq"
        if lookup not in LOOKUPS:
            raise ValueError(f"Unknown filter lookup '{lookup}' in '{key}'")
        if lookup == "in" and not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError(f"Filter '{key}' needs a list of values")
        conditions.append(Condition(column, lookup, value))
    return conditions


def parse_order(order_by: str | None) -> tuple[str, bool] | None:
    """Parse ``"col"`` / ``"-col"`` into ``(column, descending)``."""
    if not order_by:
        return None
    if order_by.startswith("-"):
        return order_by[1:], True
    return order_by, False


def matches(row: dict, conditions: list[Condition]) -> bool:
    """Evaluate parsed conditions against an in-memory row.

    Mirrors the adapters' SQL semantics without a database (in-memory
    clients and tests).
    """
    for column, lookup, value in conditions:
        actual = row.get(column)
        if lookup == "eq":
            if actual is None or actual != value:
                return False
        elif lookup == "neq":
            if actual is not None and actual == value:
                return False
        elif lookup == "in":
            if actual not in value:
                return False
        elif lookup == "is":
            if actual is not value and actual != value:
                return False
        elif lookup == "not_null":
            if (actual is None) == bool(value):
                return False
        else:
            if actual is None:
                return False
            if lookup == "lt" and not actual < value:
                return False
            if lookup == "lte" and not actual <= value:
                return False
            if lookup == "gt" and not actual > value:
                return False
            if lookup == "gte" and not actual >= value:
                return False
    return True
