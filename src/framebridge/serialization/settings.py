from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SerializationSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    include_underscore_properties: bool = Field(
        default=False, alias="includeUnderscoreProperties"
    )
