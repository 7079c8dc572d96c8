"""Core configuration and utilities for TrackerBase."""

from trackerbase.core.config import settings
from trackerbase.core.logging import setup_logging

__all__ = ["settings", "setup_logging"]
