from collections.abc import Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from mxindex.config.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from mxindex.utils.errors import FilterValidationError

# Columns filled from probes; everything else is identity or bookkeeping.
FETCHED_FIELDS = (
    "name",
    "description",
    "logo_url",
    "theme",
    "registration_open",
    "public_rooms_count",
    "room_versions",
    "version",
    "federation_version",
)


class ServerRecord(BaseModel):
    id: int | None = None
    domain: str
    delegated_server: str | None = None
    name: str | None = None
    description: str | None = None
    logo_url: str | None = None
    theme: str | None = None
    registration_open: bool | None = None
    public_rooms_count: int | None = Field(default=None, ge=0)
    room_versions: list[str] | None = None
    version: str | None = None
    federation_version: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def fetched_values(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in FETCHED_FIELDS}

    def has_fetched_data(self) -> bool:
        return any(value is not None for value in self.fetched_values().values())


class SortField(StrEnum):
    NAME = "name"
    DOMAIN = "domain"
    CREATED_AT = "created_at"
    PUBLIC_ROOMS_COUNT = "public_rooms_count"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


_SORT_FIELD_ALIASES = {"createdat": "created_at", "publicroomscount": "public_rooms_count"}
_SORT_ORDER_ALIASES = {"ascending": "asc", "descending": "desc"}


class SearchFilters(BaseModel):
    """Validated catalog search options. All set filters apply conjunctively."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    search: str | None = Field(default=None, validation_alias=AliasChoices("search", "text"))
    registration_open: bool | None = None
    has_rooms: bool | None = None
    room_version: str | None = None
    sort_by: SortField = SortField.DOMAIN
    sort_order: SortOrder = SortOrder.ASC
    limit: int = DEFAULT_PAGE_LIMIT
    offset: int = Field(default=0, ge=0)

    @field_validator("search", "room_version", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("sort_by", mode="before")
    @classmethod
    def normalize_sort_by(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            return _SORT_FIELD_ALIASES.get(key.replace("_", ""), key)
        return value

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            return _SORT_ORDER_ALIASES.get(key, key)
        return value

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: int) -> int:
        return max(1, min(value, MAX_PAGE_LIMIT))

    @classmethod
    def parse(cls, raw: Mapping[str, Any]) -> "SearchFilters":
        """Validate raw (e.g. query-string) values, raising FilterValidationError."""
        try:
            return cls.model_validate(dict(raw))
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in errors)
            raise FilterValidationError(f"Invalid search filter: {fields}", errors=errors) from e


class ServerPage(BaseModel):
    servers: list[ServerRecord]
    total: int
    limit: int
    offset: int
