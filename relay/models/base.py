"""JsonModel base class for serialized relay models."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """Base model with camelCase/snake_case conversion.

    - JSON output uses camelCase (health endpoint, capture files)
    - Internal Python uses snake_case
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def model_dump(self, **kwargs) -> dict:
        """Override model_dump - snake_case, JSON-safe values."""
        kwargs.setdefault("mode", "json")
        return super().model_dump(**kwargs)

    def model_dump_json(self, **kwargs) -> str:
        """Override to ensure camelCase in JSON output."""
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)

    def to_dict(self, by_alias: bool = False) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary without None values."""
        return self.model_dump(exclude_none=True, by_alias=by_alias)
