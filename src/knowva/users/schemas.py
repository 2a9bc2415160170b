"""Typed views of the JSON blobs stored on the user row."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserPreferences(BaseModel):
    """Gameplay and privacy preferences."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    preferred_categories: list[str] = []
    difficulty_level: str = "Mixed"
    sound_enabled: bool = True
    notifications_enabled: bool = True
    profile_visibility: str = "Public"  # Public, Friends, Private
