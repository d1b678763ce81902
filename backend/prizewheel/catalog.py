"""Load campaign definitions from YAML files."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from shared.dal.models import Game


class CatalogError(Exception):
    """The campaign file is missing, unreadable or does not describe a valid game."""


def load_game_file(path: Path) -> Game:
    """Read a campaign YAML file (camelCase or snake_case keys) into a Game."""
    if not path.exists():
        raise CatalogError(f"campaign file not found: {path}")

    with path.open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CatalogError(f"invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError(f"{path} must contain a mapping")
    try:
        return Game.model_validate(data)
    except ValidationError as e:
        raise CatalogError(f"invalid campaign in {path}: {e}") from e
