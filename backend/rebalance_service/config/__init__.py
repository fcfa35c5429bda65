"""Configuration package for the rebalance advisor service."""

from .settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]
