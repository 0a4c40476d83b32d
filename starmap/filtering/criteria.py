"""Conjunctive filter criteria over solar-system records.

A filter expression is a comma-separated list of ``<property> <operator>
<value>`` clauses, e.g. ``"planets gt 5, name eq Jita"``. Clauses are parsed
into :class:`Criterion` objects and evaluated against the dictionaries
returned by the ESI ``/universe/systems/{id}/`` endpoint. Every clause must
hold for a record to match.
"""

from __future__ import annotations

import operator as _operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..errors import ParseError


Operand = Union[int, float, str]

CLAUSE_PATTERN = re.compile(r"^\s*(\w+)\s+(eq|ne|gt|ge|lt|le)\s+(.+?)\s*$", re.IGNORECASE)
INT_PATTERN = re.compile(r"^[+-]?\d+$")
FLOAT_PATTERN = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?$")

COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": _operator.eq,
    "ne": _operator.ne,
    "gt": _operator.gt,
    "ge": _operator.ge,
    "lt": _operator.lt,
    "le": _operator.le,
}
STRING_OPERATORS = frozenset({"eq", "ne"})


def _size(value: Any) -> int:
    return len(value) if isinstance(value, (list, tuple)) else 0


def _count(key: str) -> Callable[[dict], int]:
    def resolve(record: dict) -> int:
        return _size(record.get(key))

    return resolve


def _nested_count(outer: str, inner: str) -> Callable[[dict], int]:
    def resolve(record: dict) -> int:
        elements = record.get(outer)
        if not isinstance(elements, (list, tuple)):
            return 0
        return sum(_size(element.get(inner)) for element in elements if isinstance(element, dict))

    return resolve


def _scalar(key: str) -> Callable[[dict], float]:
    def resolve(record: dict) -> float:
        value = record.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return float(value)

    return resolve


def _text(key: str) -> Callable[[dict], str]:
    def resolve(record: dict) -> str:
        return str(record.get(key) or "")

    return resolve


# Property name (lower-cased) -> value resolver. String-valued resolvers only
# support equality operators.
PROPERTIES: Dict[str, Callable[[dict], Operand]] = {
    "planets": _count("planets"),
    "stargates": _count("stargates"),
    "stations": _count("stations"),
    "totalmoons": _nested_count("planets", "moons"),
    "totalbelts": _nested_count("planets", "asteroid_belts"),
    "security": _scalar("security_status"),
    "name": _text("name"),
    "securityclass": _text("security_class"),
}


@dataclass(frozen=True)
class Criterion:
    """A single ``(property, operator, operand)`` predicate."""

    property: str
    operator: str
    operand: Operand

    def __str__(self) -> str:
        return f"{self.property} {self.operator} {self.operand!r}"


QueryPlan = Tuple[Criterion, ...]


def coerce_operand(raw: str) -> Operand:
    """Interpret ``raw`` as an int, then a float, otherwise an unquoted string."""

    text = raw.strip()
    if INT_PATTERN.match(text):
        return int(text)
    if FLOAT_PATTERN.match(text):
        return float(text)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {'"', "'"}:
        return text[1:-1]
    return text


def build_criterion(prop: str, op: str, value: Union[str, Operand]) -> Criterion:
    """Build a criterion from an explicit triple.

    ``value`` given as a string goes through the same coercion as a parsed
    clause, so ``build_criterion("planets", "gt", "5")`` equals the
    criterion parsed from ``"planets gt 5"``.
    """

    clause = f"{prop} {op} {value}"
    name = (prop or "").strip()
    if not re.fullmatch(r"\w+", name):
        raise ParseError(clause, "property must be a single word")
    op_key = (op or "").strip().lower()
    if op_key not in COMPARATORS:
        raise ParseError(clause, f"unknown operator {op!r}")
    if isinstance(value, str):
        if not value.strip():
            raise ParseError(clause, "missing value")
        operand: Operand = coerce_operand(value)
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(clause, f"unsupported value type {type(value).__name__}")
    else:
        operand = value
    return Criterion(property=name, operator=op_key, operand=operand)


def parse_filter(expression: Optional[str]) -> QueryPlan:
    """Parse a comma-separated filter expression into a query plan.

    An empty or blank expression yields an empty plan, which matches every
    record.

    Raises:
        ParseError: naming the first clause that does not match
            ``<property> <operator> <value>``. No partial plan is returned.
    """

    if expression is None or not expression.strip():
        return ()

    criteria: List[Criterion] = []
    for clause in expression.split(","):
        match = CLAUSE_PATTERN.match(clause)
        if match is None:
            raise ParseError(clause.strip())
        prop, op, value = match.groups()
        criteria.append(build_criterion(prop, op, value))
    return tuple(criteria)


def plan_from_triple(prop: str, op: str, value: Union[str, Operand]) -> QueryPlan:
    return (build_criterion(prop, op, value),)


def evaluate(record: dict, criterion: Criterion) -> bool:
    """Return whether ``record`` satisfies ``criterion``.

    Unknown properties, string fields compared with ordering operators and
    operands of the wrong type never match; none of these raise. Fields of
    an unexpected shape count as absent (0 for counts and scalars).
    """

    resolver = PROPERTIES.get(criterion.property.lower())
    compare = COMPARATORS.get(criterion.operator)
    if resolver is None or compare is None or not isinstance(record, dict):
        return False

    field_value = resolver(record)
    operand = criterion.operand

    if isinstance(field_value, str):
        if criterion.operator not in STRING_OPERATORS or not isinstance(operand, str):
            return False
        return compare(field_value.casefold(), operand.casefold())

    if isinstance(operand, str):
        return False
    if isinstance(field_value, float) or isinstance(operand, float):
        return compare(float(field_value), float(operand))
    return compare(field_value, operand)


def evaluate_all(record: dict, plan: QueryPlan) -> bool:
    return all(evaluate(record, criterion) for criterion in plan)


def match_first(records: Iterable[dict], plan: QueryPlan) -> Optional[dict]:
    """Return the first record, in iteration order, that satisfies ``plan``."""

    for record in records:
        if evaluate_all(record, plan):
            return record
    return None


def match_all(records: Iterable[dict], plan: QueryPlan) -> List[dict]:
    return [record for record in records if evaluate_all(record, plan)]
