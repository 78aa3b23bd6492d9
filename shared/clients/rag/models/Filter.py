"""Backend-agnostic metadata filters for vector index queries.

A filter is an immutable, conjunctive set of predicates over payload fields.
Each RAG backend translates it into its own filter syntax.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class FilterOp(str, Enum):
    EQ = "eq"
    NE = "ne"
    IN = "in"


class FilterPredicate(BaseModel):
    """A single condition on one payload field.

    Attributes:
        field: Payload field name (e.g. "owner_id").
        op:    Comparison operator.
        value: Scalar for eq/ne, tuple of scalars for in.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    op: FilterOp
    value: Any


class IndexFilter(BaseModel):
    """Immutable conjunction of predicates. An empty filter matches everything."""

    model_config = ConfigDict(frozen=True)

    predicates: tuple[FilterPredicate, ...] = ()

    def is_empty(self) -> bool:
        return not self.predicates

    def has(self, field: str, op: FilterOp | None = None) -> bool:
        """Returns True if any predicate targets the given field (and operator, if given)."""
        return any(p.field == field and (op is None or p.op == op) for p in self.predicates)

    def get(self, field: str, op: FilterOp = FilterOp.EQ) -> Any:
        """Returns the value of the first predicate for field/op, or None."""
        for predicate in self.predicates:
            if predicate.field == field and predicate.op == op:
                return predicate.value
        return None


class IndexFilterBuilder:
    """Collects predicates from optional values and builds an IndexFilter.

    Every method returns the builder. Methods given a None/empty value add
    nothing, so callers can pass optional search options straight through.

    Example:
        IndexFilterBuilder().owner(owner_id).equals("type", "chunk").build()
    """

    OWNER_FIELD = "owner_id"

    def __init__(self):
        self._predicates: list[FilterPredicate] = []

    def owner(self, owner_id: str | None) -> "IndexFilterBuilder":
        # null or empty owner means an unscoped query
        if owner_id is None or str(owner_id).strip() == "":
            return self
        return self.equals(self.OWNER_FIELD, str(owner_id))

    def equals(self, field: str, value: Any) -> "IndexFilterBuilder":
        if value is None or value == "":
            return self
        self._predicates.append(FilterPredicate(field=field, op=FilterOp.EQ, value=value))
        return self

    def not_equals(self, field: str, value: Any) -> "IndexFilterBuilder":
        if value is None or value == "":
            return self
        self._predicates.append(FilterPredicate(field=field, op=FilterOp.NE, value=value))
        return self

    def within(self, field: str, values: list | tuple | set | None) -> "IndexFilterBuilder":
        if not values:
            return self
        self._predicates.append(FilterPredicate(field=field, op=FilterOp.IN, value=tuple(values)))
        return self

    def build(self) -> IndexFilter:
        return IndexFilter(predicates=tuple(self._predicates))
