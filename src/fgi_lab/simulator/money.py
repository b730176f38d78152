"""Decimal arithmetic rules for fees, funding and PnL settlement."""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Union

from fgi_lab.simulator.models import RoundingPolicy, SimulationSettings

PRECISION = 28

_ROUNDING_MODES = {
    RoundingPolicy.HALF_EVEN: ROUND_HALF_EVEN,
    RoundingPolicy.HALF_UP: ROUND_HALF_UP,
}

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps the shortest repr of a float instead of its binary expansion
    return Decimal(str(value))


class Money:
    """Settlement helper bound to one settings object.

    All arithmetic that feeds a balance runs inside ``context()`` so that
    precision and rounding do not depend on the caller's thread-local
    decimal context.
    """

    def __init__(self, settings: SimulationSettings) -> None:
        self.rounding = _ROUNDING_MODES[RoundingPolicy(settings.rounding)]
        self.places = int(settings.settlement_places)
        self.quantum = Decimal(1).scaleb(-self.places)

    def context(self):
        return localcontext(Context(prec=PRECISION, rounding=self.rounding))

    def settle(self, amount: Decimal) -> Decimal:
        return amount.quantize(self.quantum, rounding=self.rounding)

    def pct(self, numerator: Decimal, denominator: Decimal) -> float:
        if denominator == 0:
            return 0.0
        return float(numerator / denominator * HUNDRED)
