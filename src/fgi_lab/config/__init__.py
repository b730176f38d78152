"""Config loading and freezing."""

from fgi_lab.config.loader import (
    compute_config_hash,
    freeze_config,
    load_config,
    serialize_config,
    verify_config_lock,
)
from fgi_lab.config.models import CacheConfig, LabConfig, LoggingConfig, StoreConfig, SweepConfig

__all__ = [
    "CacheConfig",
    "LabConfig",
    "LoggingConfig",
    "StoreConfig",
    "SweepConfig",
    "compute_config_hash",
    "freeze_config",
    "load_config",
    "serialize_config",
    "verify_config_lock",
]
