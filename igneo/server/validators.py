"""Shared validation utilities."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from igneo.lib.config import get_settings

# ThingSpeak caps a feed request at 8000 entries
MIN_RESULTS = 1
MAX_RESULTS = 8000


def _default_results() -> int:
    return get_settings().history.results


class HistoryQuery(BaseModel):
    """Validated query parameters of an on-demand history request."""

    results: int = Field(
        default_factory=_default_results, ge=MIN_RESULTS, le=MAX_RESULTS
    )
    start: datetime | None = None
    end: datetime | None = None

    @field_validator("start", "end")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _check_range(self) -> Self:
        if self.start and self.end and self.start >= self.end:
            raise ValueError("start must be before end")
        return self

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> Self:
        """Build from request query params, ignoring empty values.

        Raises:
            ValidationError: If a parameter is invalid.
        """
        return cls.model_validate(
            {
                name: params[name]
                for name in ("results", "start", "end")
                if params.get(name, "").strip()
            }
        )
