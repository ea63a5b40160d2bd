"""Schema for the Teachable Machine ``metadata.json`` that ships next to the model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModelMetadata(BaseModel):
    """Label list and input geometry of an exported image model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())

    labels: list[str] = Field(min_length=1)
    image_size: int = Field(default=224, ge=1, alias="imageSize")
    model_name: str = Field(default="tm-image-model", alias="modelName")
    tm_version: str | None = Field(default=None, alias="tmVersion")
    package_version: str | None = Field(default=None, alias="packageVersion")
