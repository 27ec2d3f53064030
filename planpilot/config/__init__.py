"""Planpilot configuration.

Settings live in ``~/.planpilot/planpilot.yml`` (override with
``PLANPILOT_CONFIG``). Every key is optional; a missing file means defaults.
"""

from planpilot.config.loader import load_config, load_planpilot_config
from planpilot.config.schema import HistoryConfig, LoggingConfig, MarkdownConfig, PlanpilotConfig, StoreConfig

__all__ = [
    "HistoryConfig",
    "LoggingConfig",
    "MarkdownConfig",
    "PlanpilotConfig",
    "StoreConfig",
    "load_config",
    "load_planpilot_config",
]
