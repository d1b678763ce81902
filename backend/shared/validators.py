"""Parsing helpers for list-valued settings read from the environment."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Read a list of strings given as a list, a JSON array or comma-separated text.

    Blank entries are dropped. Raises ValueError for malformed JSON, non-string
    items, and (unless allow_empty) an empty result.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(value, list):
                raise ValueError("JSON value must be an array of strings")
        else:
            value = text.split(",")

    if not all(isinstance(item, str) for item in value):
        raise ValueError("List items must be strings")
    items = [item.strip() for item in value if item.strip()]
    if not items and not allow_empty:
        raise ValueError("List must not be empty")
    return items


def parse_origins(value: str | list[str]) -> list[str]:
    """Parse CORS origins. Each must be an http(s) origin; trailing slashes are removed."""
    origins = [origin.rstrip("/") for origin in parse_string_list(value)]
    for origin in origins:
        if origin != "*" and not origin.startswith(("http://", "https://")):
            raise ValueError(f"Invalid origin {origin!r}: must start with http:// or https://")
    return origins


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands list fields to their validators as raw strings.

    pydantic-settings JSON-decodes complex fields before validators run, which
    rejects comma-separated values. Fields named in list_fields skip that step.
    """

    list_fields: frozenset[str] = frozenset({"cors_origins"})

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in self.list_fields and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
