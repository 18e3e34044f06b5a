"""Staging endpoint models."""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class StageRequest(BaseModel):
    """HTML to stage. Older clients send it as `htmlContent`."""

    html: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("html", "htmlContent"),
        description="Rendered recipe HTML",
    )


class StageResponse(BaseModel):
    id: str = Field(..., description="Opaque staging id")
    url: str = Field(..., description="URL that serves the HTML once")
