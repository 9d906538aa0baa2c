"""Runtime infrastructure for qrledger.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Settings via load_config() and AppConfig
- Invoice persistence via InvoiceStore
- The external workflow client via WorkflowClient

The FastAPI app lives in ``qrledger.runtime.server`` and is not imported here.

Usage:
    from qrledger.runtime import get_logger, load_config

    logger = get_logger(__name__)
    config = load_config()
"""

from qrledger.runtime.logging import get_logger, set_log_level
from qrledger.runtime.config import AppConfig, ConfigError, load_config

__all__ = [
    # Logging
    "get_logger",
    "set_log_level",
    # Config
    "AppConfig",
    "ConfigError",
    "load_config",
]
