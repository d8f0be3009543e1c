"""Operator selection for automatic assignment."""

from collections.abc import Iterable

from handoff_queue.domain import OperatorWorkload


def eligible_operators(operators: Iterable[OperatorWorkload]) -> list[OperatorWorkload]:
    """Operators below their capacity ceiling (or without one), in input order."""
    return [op for op in operators if op.has_capacity()]


def select_least_loaded(operators: Iterable[OperatorWorkload]) -> OperatorWorkload | None:
    """Pick the eligible operator with the lowest current load.

    Ties keep the first operator seen, so the result is stable with respect
    to the order storage returned. Returns None when nobody has capacity.
    """
    chosen: OperatorWorkload | None = None
    for op in eligible_operators(operators):
        if chosen is None or op.current_load < chosen.current_load:
            chosen = op
    return chosen
