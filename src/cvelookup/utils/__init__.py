"""Utility modules for cvelookup."""

from .logger import get_logger
from .config import Config
from .exceptions import *

__all__ = ["get_logger", "Config"]
