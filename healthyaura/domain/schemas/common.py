"""Shared pydantic base for backend payloads."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Accepts the backend's camelCase keys and Python snake_case names alike.

    Unknown keys are dropped so payload drift between backend revisions never
    reaches the services.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "ignore",
    }

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
