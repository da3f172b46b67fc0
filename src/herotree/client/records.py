"""Wire records returned by the remote resource API.

Only the fields the tree reads are declared; anything else the API sends is
kept (``extra="allow"``) so callers can still reach it. Ids are always
strings, numeric ids are coerced.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RemoteRecord(BaseModel):
    """Base model for remote records."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    id: str


class Reference(RemoteRecord):
    """Embedded ``{"id": ..., "name": ...}`` pointer to another resource."""

    name: str | None = None


class AppRecord(RemoteRecord):
    """An application."""

    name: str
    web_url: str | None = None
    git_url: str | None = None


class DynoRecord(RemoteRecord):
    """A single running (or stopped) process."""

    name: str
    state: str = "down"
    command: str = ""
    type: str | None = None
    size: str | None = None
    attach_url: str | None = None


class AddonService(BaseModel):
    """Service an add-on is an instance of (e.g., heroku-postgresql)."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str | None = None
    name: str


class AddonPlan(BaseModel):
    """Plan of an add-on (e.g., heroku-postgresql:mini)."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str | None = None
    name: str


class AddonRecord(RemoteRecord):
    """An add-on attached to an application."""

    name: str
    state: str = "provisioned"
    addon_service: AddonService | None = None
    plan: AddonPlan | None = None
    config_vars: list[str] = Field(default_factory=list)


class PipelineRecord(RemoteRecord):
    """A deployment pipeline."""

    name: str


class CouplingRecord(RemoteRecord):
    """Association of one application with one pipeline stage."""

    stage: str
    app: Reference
    pipeline: Reference | None = None


class FormationRecord(RemoteRecord):
    """Process formation entry: how many dynos of a type should run."""

    type: str
    quantity: int = 0
    command: str = ""
    size: str | None = None


def parse_records(model: type[RemoteRecord], records: list[dict[str, Any]]) -> list[Any]:
    """Validate a list of raw records into ``model`` instances."""
    return [model.model_validate(record) for record in records]
