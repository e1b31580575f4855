"""Task models"""
from enum import Enum
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timedelta


class TaskStatus(str, Enum):
    """Catalog status of a task"""
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class Task(BaseModel):
    """Task catalog definition"""
    id: str
    title: str
    task_type: str = "custom"
    points_reward: int = Field(ge=0)
    is_repeatable: bool = False
    # Fractional hours are allowed (0.25 == 15 minutes)
    repeat_interval_hours: Optional[Decimal] = None
    max_completions: Optional[int] = None
    requires_wallet: bool = False
    status: TaskStatus = TaskStatus.ACTIVE
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None

    @property
    def cooldown(self) -> Optional[timedelta]:
        if not self.repeat_interval_hours:
            return None
        return timedelta(hours=float(self.repeat_interval_hours))
