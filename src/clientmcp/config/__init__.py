"""Configuration of the clientmcp server process."""

from clientmcp.config.settings import Settings

__all__ = ["Settings"]
