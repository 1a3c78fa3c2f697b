"""
FastAPI dependencies for dependency injection.

Provides the startup resources to route handlers.
"""

from typing import Optional

import redis

from infra.bootstrap import Resources
from infra.database import Database


# Global resources (set during app lifespan)
_resources: Optional[Resources] = None


def set_resources(resources: Optional[Resources]) -> None:
    """Set the global resources instance."""
    global _resources
    _resources = resources


async def get_resources() -> Resources:
    """
    Dependency that provides the startup resources.

    Usage:
        @router.get("/posts")
        async def list_posts(
            resources: Resources = Depends(get_resources)
        ):
            ...
    """
    if _resources is None:
        raise RuntimeError("Resources not initialized")
    return _resources


async def get_database() -> Database:
    """
    Dependency that provides the database handle.
    """
    return (await get_resources()).db


async def get_cache() -> redis.Redis:
    """
    Dependency that provides the Redis client.
    """
    return (await get_resources()).cache
