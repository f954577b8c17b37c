"""Error taxonomy for the costing and pricing services.

Structural problems (cycles) always halt the request. Numeric edge cases are
raised only where the caller asked for a value that cannot exist, and always
carry the nearest feasible alternative.
"""
from uuid import UUID


class PricingError(ValueError):
    """Base class for costing/pricing failures."""


class CyclicCompositionError(PricingError):
    """A composed ingredient contains itself, directly or transitively."""

    def __init__(self, cycle: list[UUID], names: dict[UUID, str] | None = None):
        self.cycle = cycle
        labels = [names.get(node, str(node)) if names else str(node) for node in cycle]
        super().__init__(f"Circular composition detected: {' -> '.join(labels)}")


class InfeasibleMarginError(PricingError):
    """The requested margin leaves less than 1% of the price to cover cost."""

    def __init__(self, target_margin: float, max_feasible_margin: float):
        self.target_margin = target_margin
        self.max_feasible_margin = max_feasible_margin
        super().__init__(
            f"Margin {target_margin:.2%} is not achievable on this channel; "
            f"maximum feasible margin is {max_feasible_margin:.2%}"
        )


class InfeasibleCMVError(PricingError):
    """The requested CMV target cannot produce a price on this channel."""

    def __init__(self, target_cmv: float, nearest_feasible_cmv: float | None):
        self.target_cmv = target_cmv
        self.nearest_feasible_cmv = nearest_feasible_cmv
        if nearest_feasible_cmv is None:
            hint = "the channel commission leaves no net revenue"
        else:
            hint = f"nearest feasible CMV is {nearest_feasible_cmv:.2%}"
        super().__init__(f"CMV target {target_cmv:.2%} is not achievable; {hint}")


class InvalidCostError(PricingError):
    """A ratio-based computation needs a positive unit cost."""

    def __init__(self, unit_cost: float):
        self.unit_cost = unit_cost
        super().__init__(f"Unit cost must be greater than zero, got {unit_cost}")


class InvalidPriceError(PricingError):
    """A price must be greater than zero."""

    def __init__(self, price: float):
        self.price = price
        super().__init__(f"Price must be greater than zero, got {price}")
