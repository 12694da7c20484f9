from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


class MediaRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    full_url: str = Field(alias="fullUrl")
    thumb_url: str = Field(alias="thumbUrl")


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


@dataclass(frozen=True)
class ListingQuery:
    """Raw inbound values, exactly as the HTTP layer received them."""

    method: str = "GET"
    prefix: str | None = None
    max_keys: str | None = None
    continuation_token: str | None = None
    if_none_match: str | None = None


@dataclass(frozen=True)
class ListingRequest:
    namespace: str
    page_size: int
    cursor: str | None = None


@dataclass(frozen=True)
class ListingResult:
    files: tuple[MediaRecord, ...] = ()
    is_truncated: bool = False
    next_cursor: str | None = None


@dataclass(frozen=True)
class CacheEntry:
    key: str
    files: tuple[MediaRecord, ...]
    fingerprint: str
    created_at: float
    expires_at: float
    stale_until: float
    is_truncated: bool = False
    next_cursor: str | None = None

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass
class ListingResponse:
    status_code: int
    body: list[dict] | None = None
    headers: dict[str, str] = field(default_factory=dict)
