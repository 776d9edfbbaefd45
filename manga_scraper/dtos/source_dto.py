"""
DTOs for the scraper source registry endpoints.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SourceCreate(BaseModel):
    """Body of POST /sources. Selector values are comma-separated strings or lists."""

    name: str = Field(..., min_length=1, max_length=100)
    base_url: str = Field(..., min_length=1, alias="baseUrl")
    selectors: dict[str, Any]
    is_active: bool = Field(True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class SourceRead(BaseModel):
    name: str
    base_url: str
    selectors: dict[str, list[str]]
