"""Infrastructure adapters connecting the domain to fastmcp."""

from clientmcp.adapters.fastmcp_adapter import ClientAdaptationMiddleware

__all__ = ["ClientAdaptationMiddleware"]
