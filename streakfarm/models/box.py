"""Reward box models"""
from enum import Enum


class BoxRarity(str, Enum):
    """Box rarity tiers, in draw order"""
    COMMON = "common"
    RARE = "rare"
    LEGENDARY = "legendary"
