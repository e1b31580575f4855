"""
Service Container - Dependency Injection Container

Holds the infrastructure the services need and lazily builds the services
on first access.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    """

    # Infrastructure dependencies (injected)
    db: object  # Database instance

    # Services (lazy-loaded via properties)
    _economy_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def economy_service(self):
        """Get EconomyService instance (lazy-loaded)"""
        if self._economy_service is None:
            from streakfarm.services.economy_service import EconomyService
            self._economy_service = EconomyService(self.db)
            logger.debug("EconomyService instantiated")
        return self._economy_service


# Global container instance (initialized at API startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(db: object) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        db: Database instance

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(db=db)

    logger.info("Service container initialized")
    return _container


def get_economy_service():
    """FastAPI dependency returning the shared EconomyService"""
    return get_container().economy_service
