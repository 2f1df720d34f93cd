"""Core infrastructure: configuration, logging, checkpoints and the vault."""

from stagehand.core.config import StagehandSettings, load_settings
from stagehand.core.logging import ProvisionLog, configure_logging, get_logger

__all__ = [
    "ProvisionLog",
    "StagehandSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
