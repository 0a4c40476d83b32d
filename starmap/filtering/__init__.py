"""Filtering package exposing the criteria parser and evaluator."""

from .criteria import (
    Criterion,
    QueryPlan,
    build_criterion,
    evaluate,
    evaluate_all,
    match_all,
    match_first,
    parse_filter,
    plan_from_triple,
)

__all__ = [
    "Criterion",
    "QueryPlan",
    "build_criterion",
    "evaluate",
    "evaluate_all",
    "match_all",
    "match_first",
    "parse_filter",
    "plan_from_triple",
]
