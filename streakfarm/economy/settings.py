"""
Economy configuration loading

Stored blobs are merged field by field over the model defaults and
validated on load. Box settings and game config load independently, so a
bad rarity table blocks box generation without affecting check-ins.
"""

import logging
from typing import Any, Type, TypeVar

import psycopg
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from streakfarm.db import queries
from streakfarm.exceptions import ConfigurationError
from streakfarm.models.economy_config import BoxSettings, GameConfig

logger = logging.getLogger(__name__)

BOX_SETTINGS_KEY = "box_settings"
GAME_CONFIG_KEY = "game_config"

ConfigModel = TypeVar("ConfigModel", bound=BaseModel)


def parse_config(key: str, raw: Any, model: Type[ConfigModel]) -> ConfigModel:
    """
    Build a typed snapshot from a stored blob

    Raises:
        ConfigurationError: the merged values fail validation
    """
    if raw is None:
        raw = {}
    elif not isinstance(raw, dict):
        logger.warning(f"admin_config[{key}] is not a JSON object, using defaults")
        raw = {}

    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid {key}: {e.errors()[0].get('msg', str(e))}",
            config_key=key,
            cause=e
        )


async def load_box_settings(conn: psycopg.AsyncConnection) -> BoxSettings:
    raw = await queries.get_config_value(conn, BOX_SETTINGS_KEY)
    return parse_config(BOX_SETTINGS_KEY, raw, BoxSettings)


async def load_game_config(conn: psycopg.AsyncConnection) -> GameConfig:
    raw = await queries.get_config_value(conn, GAME_CONFIG_KEY)
    return parse_config(GAME_CONFIG_KEY, raw, GameConfig)
