"""
Reward box rules

Rarity is drawn by weighted random over the configured percentages; the
point value is then drawn uniformly from that rarity's inclusive range.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from streakfarm.models.box import BoxRarity
from streakfarm.models.economy_config import BoxSettings, PointRanges, RarityWeights

logger = logging.getLogger(__name__)


@dataclass
class RolledBox:
    rarity: BoxRarity
    base_points: int
    expires_at: datetime


def draw_rarity(weights: RarityWeights, rng: Optional[random.Random] = None) -> BoxRarity:
    """
    Pick a rarity from percentage weights

    A roll in [0, 100) lands in legendary first, then rare, otherwise common.
    The weights must already total 100 (checked when settings are loaded).
    """
    rng = rng or random
    roll = rng.random() * 100
    if roll < weights.legendary:
        return BoxRarity.LEGENDARY
    if roll < weights.legendary + weights.rare:
        return BoxRarity.RARE
    return BoxRarity.COMMON


def draw_base_points(
    rarity: BoxRarity,
    ranges: PointRanges,
    rng: Optional[random.Random] = None
) -> int:
    """Uniform integer in the rarity's [min, max] range"""
    rng = rng or random
    point_range = ranges.range_for(rarity)
    return rng.randint(point_range.min, point_range.max)


def box_expiry(generated_at: datetime, settings: BoxSettings) -> datetime:
    return generated_at + timedelta(hours=settings.box_expiry_hours)


def roll_box(
    settings: BoxSettings,
    generated_at: datetime,
    rng: Optional[random.Random] = None
) -> RolledBox:
    """Draw rarity and points for a new box"""
    rarity = draw_rarity(settings.rarity_weights, rng)
    return RolledBox(
        rarity=rarity,
        base_points=draw_base_points(rarity, settings.point_ranges, rng),
        expires_at=box_expiry(generated_at, settings),
    )


def is_overdue(expires_at: datetime, now: datetime) -> bool:
    """A box is expired once `now` is strictly past its expiry"""
    return expires_at < now
