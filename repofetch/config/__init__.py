"""Configuration for repofetch."""

from .schema import ENV_PREFIX, FetcherConfig

__all__ = ["ENV_PREFIX", "FetcherConfig"]
