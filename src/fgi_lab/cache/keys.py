"""Deterministic cache keys for simulation parameters and settings."""

from __future__ import annotations

import hashlib
from dataclasses import fields
from decimal import Decimal
from enum import Enum

from fgi_lab.simulator.models import SimulationParameters, SimulationSettings


def _number(value) -> str:
    normalized = Decimal(str(value)).normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, "f")


def cache_key(params: SimulationParameters) -> str:
    """``{asset}-{timeframe}-{lev}x-{low}-{high}-{extreme_low}-{extreme_high}-{mode}[-{start}-{end}]``.

    Extreme thresholds are written with their defaults (0 and 100) so an
    unset override and an explicit default share one entry.
    """
    key = "-".join(
        (
            params.asset,
            params.timeframe,
            f"{int(params.leverage)}x",
            _number(params.low_threshold),
            _number(params.high_threshold),
            _number(params.extreme_low()),
            _number(params.extreme_high()),
            params.strategy_mode.value,
        )
    )
    if params.date_range is not None:
        key = f"{key}-{params.date_range.label()}"
    return key


def settings_fingerprint(settings: SimulationSettings) -> str:
    """Short hash of every setting; equal values (``0.001`` and ``0.0010``) hash alike."""
    parts = []
    for field in fields(settings):
        value = getattr(settings, field.name)
        if isinstance(value, Enum):
            text = value.value
        elif isinstance(value, (Decimal, float)):
            text = _number(value)
        else:
            text = str(value)
        parts.append(f"{field.name}={text}")
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:12]
