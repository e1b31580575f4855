"""
Economy configuration snapshot

Typed view over the loosely-typed JSON blobs stored in `admin_config`.
Every field has a documented default, so a partial blob merges field by
field over the defaults. Validation runs when the snapshot is built.
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator

from streakfarm.models.box import BoxRarity


class RarityWeights(BaseModel):
    """Percent chance of each rarity; must total exactly 100"""
    model_config = ConfigDict(extra="ignore")

    common: int = Field(default=85, ge=0)
    rare: int = Field(default=14, ge=0)
    legendary: int = Field(default=1, ge=0)

    @property
    def total(self) -> int:
        return self.common + self.rare + self.legendary


class PointRange(BaseModel):
    """Inclusive base-point range for one rarity"""
    model_config = ConfigDict(extra="ignore")

    min: int = Field(ge=0)
    max: int = Field(ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "PointRange":
        if self.min > self.max:
            raise ValueError(f"point range min {self.min} exceeds max {self.max}")
        return self


# One subclass per rarity so a blob setting only one bound keeps the other
class CommonPointRange(PointRange):
    min: int = Field(default=50, ge=0)
    max: int = Field(default=1000, ge=0)


class RarePointRange(PointRange):
    min: int = Field(default=1000, ge=0)
    max: int = Field(default=5000, ge=0)


class LegendaryPointRange(PointRange):
    min: int = Field(default=5000, ge=0)
    max: int = Field(default=10000, ge=0)


class PointRanges(BaseModel):
    model_config = ConfigDict(extra="ignore")

    common: CommonPointRange = CommonPointRange()
    rare: RarePointRange = RarePointRange()
    legendary: LegendaryPointRange = LegendaryPointRange()

    def range_for(self, rarity: BoxRarity) -> PointRange:
        return getattr(self, rarity.value)


class BoxSettings(BaseModel):
    """Box generation settings (`admin_config.box_settings`)"""
    model_config = ConfigDict(extra="ignore")

    box_expiry_hours: float = Field(default=3, gt=0)
    max_boxes_per_day: int = Field(default=24, gt=0)
    active_window_days: int = Field(default=7, gt=0)
    rarity_weights: RarityWeights = RarityWeights()
    point_ranges: PointRanges = PointRanges()

    @model_validator(mode="after")
    def check_weights_sum(self) -> "BoxSettings":
        if self.rarity_weights.total != 100:
            raise ValueError(
                f"rarity weights must sum to 100, got {self.rarity_weights.total}"
            )
        return self


class GameConfig(BaseModel):
    """Check-in and bonus settings (`admin_config.game_config`)"""
    model_config = ConfigDict(extra="ignore")

    checkin_base_points: int = Field(default=50, ge=0)
    streak_bonus_per_day: int = Field(default=5, ge=0)
    streak_bonus_cap: int = Field(default=100, ge=0)
    wallet_connect_bonus: int = Field(default=2000, ge=0)
