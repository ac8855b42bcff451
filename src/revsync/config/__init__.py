"""Configuration management for the sync application."""

from .settings import FallbackPolicy, LoggingOptions, RevsyncConfig, SyncOptions

__all__ = ["FallbackPolicy", "LoggingOptions", "RevsyncConfig", "SyncOptions"]
