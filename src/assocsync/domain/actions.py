"""Store actions — the only way to change cached state.

Each action is a frozen model tagged by ``type``.  The reducer matches on the
concrete class, so adding a variant without handling it fails type checking.
Actions that depend on time carry their own timestamp (``at``) so that
reducing the same action twice gives the same result.
"""

from __future__ import annotations

import time
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from assocsync.domain.cache import ErrorInfo
from assocsync.domain.types import FetchMode, normalize_domain


class _DomainAction(BaseModel):
    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    domain: str

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> str:
        return normalize_domain(value)


class FetchStart(_DomainAction):
    """A fetch for *domain* has been issued."""

    type: Literal["FETCH_START"] = "FETCH_START"


class FetchSuccess(_DomainAction):
    """A fetch resolved with *payload*, applied by full replace or patch."""

    type: Literal["FETCH_SUCCESS"] = "FETCH_SUCCESS"
    payload: Any = None
    mode: FetchMode = FetchMode.REPLACE
    at: float = Field(default_factory=time.time)


class FetchError(_DomainAction):
    """A fetch failed; cached data is kept."""

    type: Literal["FETCH_ERROR"] = "FETCH_ERROR"
    error: ErrorInfo
    at: float = Field(default_factory=time.time)


class ItemUpsert(_DomainAction):
    """Insert or replace one item of a collection domain."""

    type: Literal["ITEM_UPSERT"] = "ITEM_UPSERT"
    item: Any


class ItemRemove(_DomainAction):
    """Remove one item of a collection domain by key."""

    type: Literal["ITEM_REMOVE"] = "ITEM_REMOVE"
    id: Any


class Reset(_DomainAction):
    """Return a domain to the uninitialized state."""

    type: Literal["RESET"] = "RESET"


class Invalidate(_DomainAction):
    """Mark fresh data as stale without dropping it."""

    type: Literal["INVALIDATE"] = "INVALIDATE"


Action = FetchStart | FetchSuccess | FetchError | ItemUpsert | ItemRemove | Reset | Invalidate

_ACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(
    Annotated[
        FetchStart | FetchSuccess | FetchError | ItemUpsert | ItemRemove | Reset | Invalidate,
        Field(discriminator="type"),
    ]
)


def parse_action(raw: dict[str, Any]) -> Action:
    """Validate a plain dict (e.g. from a push message) into an Action."""
    return _ACTION_ADAPTER.validate_python(raw)
