"""Base model with camelCase serialization for the API and the sheet backend."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every wire-facing model: snake_case in Python, camelCase on the wire.

    Both spellings are accepted on input so payloads from the spreadsheet
    backend and from Python callers validate the same way.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        """Dump with aliases, the shape the sheet backend and the frontend expect."""
        return self.model_dump(by_alias=True, mode="json")
