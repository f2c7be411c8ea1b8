"""
Cindral Shared Library
======================

Common utilities, configurations, and abstractions shared across Cindral services.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - database: Async SQLAlchemy engine and sessions
    - llm: LLM provider abstraction (Claude)
    - models: Shared Pydantic models

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "Cindral Team"

from shared.config import settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
