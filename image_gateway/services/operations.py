"""Canonicalise query-string aliases into the engine operation set.

The alias table is declarative: each canonical key lists the query names it
accepts, short form first. The first non-empty value found wins, so ``w``
overrides ``width`` when both are supplied.
"""
from __future__ import annotations

from typing import Iterable, Literal, Mapping

from pydantic import BaseModel, ConfigDict

OperationKind = Literal["string", "flag"]
QueryItems = Iterable[tuple[str, str]]

DEFAULT_FORMAT = "webp"
FLAG_VALUE = "true"


class OperationSpec(BaseModel):
    """One canonical key and the query names that feed it."""

    model_config = ConfigDict(frozen=True)

    key: str
    aliases: tuple[str, ...]
    kind: OperationKind = "string"


OPERATION_SPECS: tuple[OperationSpec, ...] = (
    OperationSpec(key="width", aliases=("w", "width")),
    OperationSpec(key="height", aliases=("h", "height")),
    OperationSpec(key="resize", aliases=("s", "resize")),
    OperationSpec(key="quality", aliases=("q", "quality")),
    OperationSpec(key="format", aliases=("f", "format")),
    OperationSpec(key="fit", aliases=("fit",)),
    OperationSpec(key="position", aliases=("pos", "position")),
    OperationSpec(key="blur", aliases=("blur",)),
    OperationSpec(key="sharpen", aliases=("sharpen",)),
    OperationSpec(key="rotate", aliases=("rotate",)),
    OperationSpec(key="flip", aliases=("flip",), kind="flag"),
    OperationSpec(key="flop", aliases=("flop",), kind="flag"),
    OperationSpec(key="grayscale", aliases=("grayscale",), kind="flag"),
    OperationSpec(key="trim", aliases=("trim",)),
    OperationSpec(key="extend", aliases=("extend",)),
    OperationSpec(key="extract", aliases=("extract",)),
    OperationSpec(key="background", aliases=("b", "background")),
    OperationSpec(key="kernel", aliases=("kernel",)),
    OperationSpec(key="enlarge", aliases=("enlarge",), kind="flag"),
    OperationSpec(key="median", aliases=("median",)),
    OperationSpec(key="gamma", aliases=("gamma",)),
    OperationSpec(key="negate", aliases=("negate",), kind="flag"),
    OperationSpec(key="normalize", aliases=("normalize",), kind="flag"),
    OperationSpec(key="threshold", aliases=("threshold",)),
    OperationSpec(key="tint", aliases=("tint",)),
    OperationSpec(key="animated", aliases=("animated",), kind="flag"),
)

OPERATION_PARAMS: frozenset[str] = frozenset(
    alias for spec in OPERATION_SPECS for alias in spec.aliases
)


def first_values(query: QueryItems) -> dict[str, str]:
    """Collapse repeated query names to their first value."""
    values: dict[str, str] = {}
    for name, value in query:
        values.setdefault(name, value)
    return values


def _as_lookup(query: QueryItems | Mapping[str, str]) -> Mapping[str, str]:
    if isinstance(query, Mapping):
        return query
    return first_values(query)


def has_operation_params(query: QueryItems | Mapping[str, str]) -> bool:
    lookup = _as_lookup(query)
    return any(name in lookup for name in OPERATION_PARAMS)


def resolve_operation(spec: OperationSpec, lookup: Mapping[str, str]) -> str | None:
    """Return the canonical value for one table entry, or None if absent."""
    if spec.kind == "flag":
        return FLAG_VALUE if any(alias in lookup for alias in spec.aliases) else None
    for alias in spec.aliases:
        value = lookup.get(alias)
        if value:
            return value
    return None


def build_operations(query: QueryItems | Mapping[str, str]) -> dict[str, str]:
    lookup = _as_lookup(query)
    operations: dict[str, str] = {}
    for spec in OPERATION_SPECS:
        value = resolve_operation(spec, lookup)
        if value is not None:
            operations[spec.key] = value

    operations.setdefault("format", DEFAULT_FORMAT)
    return operations
