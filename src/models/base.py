"""Shared model configuration."""

from typing import Any
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ResourceModel(BaseModel):
    """Stored with snake_case columns, served to the UI with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_row(self) -> dict[str, Any]:
        """Serialize for the database."""
        return self.model_dump(mode="json")

    def to_api(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return self.model_dump(mode="json", by_alias=True)
