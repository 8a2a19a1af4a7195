"""
Infrastructure package.

Remote read client and logging configuration.
"""

from yume.infra.logging_cfg import build_logger, log_event
from yume.infra.sui_client import DynamicFieldEntry, DynamicFieldPage, OwnedObjectPage, SuiReadClient

__all__ = [
    "build_logger",
    "log_event",
    "SuiReadClient",
    "DynamicFieldEntry",
    "DynamicFieldPage",
    "OwnedObjectPage",
]
