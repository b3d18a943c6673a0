"""
Config package exports: static constants, declared collection schemas and
the environment-driven SyncConfig.
"""

from . import constant, schema, settings
from .constant import *
from .schema import *
from .settings import SyncConfig

__all__ = [*constant.__all__, *schema.__all__, *settings.__all__]
