"""Unit cost resolution for composed (intermediate) ingredients.

A composed ingredient's unit cost is the cost of one batch of its own bill of
materials divided by the batch yield. Composed ingredients may contain other
composed ingredients, so the ingredient set forms a directed graph:

    Brigadeiro (composed) -> Ganache (composed) -> Chocolate, Cream
                          -> Condensed milk

Resolution walks that graph leaves-first with explicit node state, so depth
is never limited by the interpreter's recursion limit, and a node revisited
while still on the current path is reported as a cycle.

Everything here is a pure function of the ingredient and BOM line lists.
Persisting recomputed costs is the caller's job (see snapshot.py).
"""
import logging
from enum import Enum
from typing import Iterable
from uuid import UUID

from menu_pricing.schemas.costing import (
    BOMLine,
    DataQualityWarning,
    IngredientCostResolution,
    IngredientNode,
)
from menu_pricing.services.errors import CyclicCompositionError

logger = logging.getLogger(__name__)


class _NodeState(Enum):
    UNVISITED = 0
    IN_PROGRESS = 1
    DONE = 2


def build_composition(
    ingredients: Iterable[IngredientNode],
    lines: Iterable[BOMLine],
) -> dict[UUID, list[BOMLine]]:
    """Map each composed ingredient id to the BOM lines it is made of.

    Lines owned by products, by unknown ingredients, or by purchased (leaf)
    ingredients are not part of the composition graph.
    """
    composed_ids = {ing.id for ing in ingredients if ing.is_composed}
    composition: dict[UUID, list[BOMLine]] = {ing_id: [] for ing_id in composed_ids}
    for line in lines:
        if line.owner_type == "ingredient" and line.owner_id in composed_ids:
            composition[line.owner_id].append(line)
    return composition


def _leaves_first_order(
    roots: Iterable[UUID],
    composition: dict[UUID, list[BOMLine]],
    names: dict[UUID, str],
) -> list[UUID]:
    """Return every node reachable from roots, dependencies before dependents.

    Raises CyclicCompositionError with the cycle members in path order, the
    repeated node closing the list (A -> B -> A).
    """
    state: dict[UUID, _NodeState] = {}
    order: list[UUID] = []

    for root in roots:
        if state.get(root, _NodeState.UNVISITED) is not _NodeState.UNVISITED:
            continue

        state[root] = _NodeState.IN_PROGRESS
        path = [root]
        stack = [iter(composition.get(root, ()))]

        while stack:
            line = next(stack[-1], None)
            if line is None:
                # All children done
                stack.pop()
                node = path.pop()
                state[node] = _NodeState.DONE
                order.append(node)
                continue

            child = line.ingredient_id
            child_state = state.get(child, _NodeState.UNVISITED)
            if child_state is _NodeState.IN_PROGRESS:
                cycle = path[path.index(child):] + [child]
                raise CyclicCompositionError(cycle, names)
            if child_state is _NodeState.UNVISITED:
                state[child] = _NodeState.IN_PROGRESS
                path.append(child)
                stack.append(iter(composition.get(child, ())))

    return order


def resolve_ingredient_costs(
    ingredients: Iterable[IngredientNode],
    lines: Iterable[BOMLine],
    only: Iterable[UUID] | None = None,
) -> IngredientCostResolution:
    """
    Resolve the unit cost of every ingredient, recomputing composed ones.

    Leaf (purchased) ingredients keep their current unit_cost. For each
    composed ingredient:

        batch_cost = sum(line.quantity_per_batch * resolved(line.ingredient_id))
        unit_cost  = batch_cost / yield_quantity

    A yield <= 0 is treated as 1 and reported as a data-quality warning.

    Args:
        ingredients: The full ingredient set
        lines: All BOM lines (product-owned lines are ignored)
        only: Restrict resolution to these ingredients and their dependencies

    Returns:
        IngredientCostResolution with costs for every resolved node

    Raises:
        CyclicCompositionError: if a composed ingredient contains itself.
            Nothing is returned partially.
    """
    ingredients = list(ingredients)
    nodes = {ing.id: ing for ing in ingredients}
    names = {ing.id: ing.name for ing in ingredients}
    composition = build_composition(ingredients, lines)

    roots = list(only) if only is not None else [ing.id for ing in ingredients]
    order = _leaves_first_order(roots, composition, names)

    unit_costs: dict[UUID, float] = {}
    warnings: list[DataQualityWarning] = []

    for node_id in order:
        node = nodes.get(node_id)
        if node is None:
            # Referenced by a BOM line but not in the ingredient set
            unit_costs[node_id] = 0.0
            continue

        if not node.is_composed:
            unit_costs[node_id] = node.unit_cost
            continue

        node_lines = composition.get(node_id, [])
        if not node_lines:
            warnings.append(DataQualityWarning(
                code="empty_composition",
                message=f"Composed ingredient '{node.name}' has no BOM lines; cost is 0",
                ingredient_id=node_id,
            ))

        batch_cost = 0.0
        for line in node_lines:
            if line.ingredient_id not in nodes:
                warnings.append(DataQualityWarning(
                    code="missing_ingredient",
                    message=f"'{node.name}' references unknown ingredient {line.ingredient_id}; counted as 0",
                    ingredient_id=line.ingredient_id,
                    owner_id=node_id,
                ))
            batch_cost += line.quantity_per_batch * unit_costs[line.ingredient_id]

        batch_yield = node.yield_quantity
        if batch_yield <= 0:
            warnings.append(DataQualityWarning(
                code="non_positive_yield",
                message=f"Composed ingredient '{node.name}' has yield {batch_yield}; using 1",
                ingredient_id=node_id,
            ))
            batch_yield = 1.0

        unit_costs[node_id] = batch_cost / batch_yield

    for warning in warnings:
        logger.warning(warning.message)

    return IngredientCostResolution(
        unit_costs=unit_costs,
        resolution_order=[node_id for node_id in order if node_id in nodes],
        composed_ids=[node_id for node_id in order if node_id in composition],
        warnings=warnings,
    )


def resolve_ingredient_cost(
    ingredient_id: UUID,
    ingredients: Iterable[IngredientNode],
    lines: Iterable[BOMLine],
) -> float:
    """Resolve one ingredient's unit cost fresh from current leaf costs."""
    ingredients = list(ingredients)
    if not any(ing.id == ingredient_id for ing in ingredients):
        raise ValueError(f"Ingredient {ingredient_id} not found")

    resolution = resolve_ingredient_costs(ingredients, lines, only=[ingredient_id])
    return resolution.cost_of(ingredient_id)


def find_cycle_for_new_line(
    ingredients: Iterable[IngredientNode],
    lines: Iterable[BOMLine],
    new_line: BOMLine,
) -> list[UUID] | None:
    """
    Check whether saving new_line would create a composition cycle.

    The owner is treated as composed for the check, since adding a line to it
    is what makes it composed.

    Returns:
        The cycle members (first node repeated at the end) or None if the
        line is safe to save. Product-owned lines can never close a cycle.
    """
    if new_line.owner_type != "ingredient":
        return None

    ingredients = list(ingredients)
    lines = list(lines)
    names = {ing.id: ing.name for ing in ingredients}
    composition = build_composition(ingredients, lines)
    if new_line.owner_id not in composition:
        composition[new_line.owner_id] = [
            line for line in lines
            if line.owner_type == "ingredient" and line.owner_id == new_line.owner_id
        ]
    composition[new_line.owner_id].append(new_line)

    try:
        _leaves_first_order([new_line.owner_id], composition, names)
    except CyclicCompositionError as e:
        return e.cycle
    return None
