# -----------------------------------------------------------------------------
# Hot/Cold classifier
# Purpose:
#   Decide which expressions must be re-evaluated per sample point ("hot")
#   and which are evaluated once at construction ("cold").
# Rules:
#   - fields are always hot
#   - an expression is hot when a direct dependency is a controlled variable
#     or is owned by an expression already marked hot
#   - a hot plain value is a function of position: it is promoted to a curve
#     over the dependent variable
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import replace
from typing import List

from .dependencies import DependencyMap
from .expressions import ParsedExpression
from .types import CONTROLLED_VARIABLES, DEPENDENT, DependencyRecord, Metadata


def _is_hot(record: DependencyRecord, dep_map: DependencyMap, hot: List[bool]) -> bool:
    for dep in record.dependencies:
        if dep in CONTROLLED_VARIABLES:
            return True
        owner = dep_map.get(dep)
        if owner is not None and hot[owner.expr_index]:
            return True
    return False


def classify(
    expressions: List[ParsedExpression],
    dep_map: DependencyMap,
    order: List[str],
    formulae: List[int],
) -> List[Metadata]:
    """
    Compute the final metadata of every expression.
    `order` must come from dependency_analysis so that a dependency's hotness
    is settled before its dependents are checked.
    """
    initial = [expr.initial_metadata() for expr in expressions]
    hot = [m.hot for m in initial]
    formula_set = set(formulae)

    # Sweep 1: named expressions, strictly in priority order
    for key in order:
        record = dep_map[key]
        if record.expr_index in formula_set:
            continue
        if hot[record.expr_index] or _is_hot(record, dep_map, hot):
            hot[record.expr_index] = True

    # Sweep 2: formulae, which nothing depends on
    for key in order:
        record = dep_map[key]
        if record.expr_index in formula_set and _is_hot(record, dep_map, hot):
            hot[record.expr_index] = True

    metadata: List[Metadata] = []
    for meta, is_hot in zip(initial, hot):
        meta = replace(meta, hot=is_hot)
        if meta.type == "value" and is_hot:
            meta = replace(meta, type="curve", dependent_var=DEPENDENT)
        metadata.append(meta)
    return metadata
