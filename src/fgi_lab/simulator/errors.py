"""Errors raised before or during a simulation run."""

from __future__ import annotations


class InvalidInputError(ValueError):
    """The sample series cannot be simulated."""


class EmptySeriesError(InvalidInputError):
    """The sample series has no samples at all."""


class InvalidParametersError(ValueError):
    """A parameter set violates threshold, leverage or mode constraints."""
