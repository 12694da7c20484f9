from typing import Protocol
from urllib.parse import quote

from gallery_api.models import ListingResult, MediaRecord

THUMBNAIL_DIR = "thumbnails/"


class ListingUpstream(Protocol):
    def list_objects(self, prefix: str, max_keys: int, continuation_token: str | None = None) -> dict: ...


class ListingFetcher:
    """Turns one page of raw object-store entries into media records."""

    def __init__(self, upstream: ListingUpstream, public_url_base: str):
        self.upstream = upstream
        self.public_url_base = public_url_base.rstrip("/")

    def _url(self, key: str) -> str:
        return f"{self.public_url_base}/{quote(key, safe='/')}"

    def to_record(self, namespace: str, key: str) -> MediaRecord:
        name = key.rsplit("/", 1)[-1]
        return MediaRecord(
            name=name,
            full_url=self._url(key),
            thumb_url=self._url(f"{namespace}{THUMBNAIL_DIR}{name}"),
        )

    def fetch(self, namespace: str, page_size: int, cursor: str | None = None) -> ListingResult:
        data = self.upstream.list_objects(namespace, page_size, cursor) or {}
        thumbnails_prefix = f"{namespace}{THUMBNAIL_DIR}"

        files = tuple(
            self.to_record(namespace, key)
            for key in (obj.get("Key") for obj in data.get("Contents") or [])
            if key and not key.endswith("/") and not key.startswith(thumbnails_prefix)
        )
        return ListingResult(
            files=files,
            is_truncated=bool(data.get("IsTruncated")),
            next_cursor=data.get("NextContinuationToken"),
        )
