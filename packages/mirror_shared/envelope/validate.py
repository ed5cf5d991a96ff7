"""Validation helpers for envelope metadata."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from packages.mirror_shared.errors import ErrorDetail, codes, validation_error

from .meta import EnvelopeKind, EnvelopeMeta


class _ValidatedEnvelopeMeta(BaseModel):
    """Validation-only view of ``EnvelopeMeta``."""

    model_config = ConfigDict(extra="forbid")

    envelope_id: str = Field(min_length=1)
    trace_id: str = Field(min_length=1)
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str = Field(min_length=1)
    principal: str = Field(min_length=1)

    @model_validator(mode="after")
    def _enforce_kind(self) -> "_ValidatedEnvelopeMeta":
        """Reject unspecified envelope kinds."""
        if self.kind == EnvelopeKind.UNSPECIFIED:
            raise ValueError("metadata.kind must be specified")
        return self


def validate_meta(meta: EnvelopeMeta) -> list[ErrorDetail]:
    """Return validation errors for required metadata fields.

    An empty list means the metadata is usable.
    """
    try:
        _ValidatedEnvelopeMeta.model_validate(asdict(meta))
    except ValidationError as exc:
        return [
            validation_error(
                _message_for(err),
                code=codes.INVALID_ARGUMENT,
                metadata={"field": f"metadata.{err['loc'][0]}" if err["loc"] else "metadata"},
            )
            for err in exc.errors()
        ]
    return []


def _message_for(error: dict) -> str:
    """Map one pydantic error entry to a stable public message."""
    location = error.get("loc", ())
    if not location:
        return str(error.get("msg", "invalid metadata"))
    field_name = str(location[0])
    if field_name == "kind":
        return "metadata.kind must be specified"
    return f"metadata.{field_name} is required"
