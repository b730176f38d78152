"""Sweep errors."""

from __future__ import annotations


class SweepCancelled(RuntimeError):
    """The sweep was cancelled or ran past its deadline."""
