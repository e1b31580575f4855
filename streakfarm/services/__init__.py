"""
Service Layer Package

Business logic between the HTTP layer and the database queries.

- EconomyService: check-ins, boxes, tasks, wallet bonus, badges, read models
"""

from streakfarm.services.container import ServiceContainer, get_container, init_container, get_economy_service
from streakfarm.services.economy_service import EconomyService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "get_economy_service",
    "EconomyService",
]
