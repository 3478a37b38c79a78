"""Models for the upstream Opendatasoft catalog payloads.

Only the fields used for display and search are typed; everything else the
API returns is kept as extra data so it can be echoed back to the client.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class DefaultMetas(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str | None = None
    description: str | None = None
    keyword: list[str] | None = None


class DatasetMetas(BaseModel):
    model_config = ConfigDict(extra="allow")

    default: DefaultMetas = Field(default_factory=DefaultMetas)


class Dataset(BaseModel):
    """One catalog entry. The API has used both ``datasetid`` and ``dataset_id``."""

    model_config = ConfigDict(extra="allow")

    dataset_id: Annotated[str, Field(validation_alias=AliasChoices("dataset_id", "datasetid"))]
    metas: DatasetMetas = Field(default_factory=DatasetMetas)

    @property
    def title(self) -> str:
        return self.metas.default.title or ""

    @property
    def description(self) -> str:
        return self.metas.default.description or ""

    @property
    def keywords(self) -> list[str]:
        return list(self.metas.default.keyword or [])

    @property
    def display_name(self) -> str:
        return self.metas.default.title or self.dataset_id

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match over title, description and keywords."""
        needle = needle.lower()
        return (
            needle in self.title.lower()
            or needle in self.description.lower()
            or needle in " ".join(self.keywords).lower()
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Catalog(BaseModel):
    """A page of the dataset catalog, as returned by ``GET /catalog/datasets``."""

    model_config = ConfigDict(extra="allow")

    total_count: int | None = None
    datasets: list[Dataset] = Field(default_factory=list, validation_alias=AliasChoices("datasets", "results"))

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
