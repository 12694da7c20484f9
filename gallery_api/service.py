import logging

from gallery_api.cache import ListingCache
from gallery_api.config import Settings
from gallery_api.errors import ConfigError, UpstreamError, ValidationError
from gallery_api.fetcher import ListingFetcher, ListingUpstream
from gallery_api.keys import cache_key, etag_header, fingerprint, if_none_match_matches
from gallery_api.models import CacheEntry, ListingQuery, ListingRequest, ListingResponse
from gallery_api.upstream import S3ListingClient, classify_upstream_error

logger = logging.getLogger(__name__)

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 1000
LISTING_VERSION = "1"


class ListingService:
    """Request handler for the cached image listing.

    One instance is created per process by ``create_app`` and owns its
    upstream client and cache.
    """

    def __init__(
        self,
        settings: Settings,
        upstream: ListingUpstream | None = None,
        cache: ListingCache | None = None,
    ):
        self.settings = settings
        self.upstream = upstream or S3ListingClient.from_settings(settings)
        self.cache = cache or ListingCache(
            max_entries=settings.cache_max_entries,
            stale_ttl_seconds=settings.cache_stale_ttl_seconds,
        )

    def _require_config(self) -> None:
        missing = self.settings.missing_required()
        if missing:
            logger.error("listing requested but settings are missing: %s", ", ".join(missing))
            raise ConfigError(f"missing settings: {', '.join(missing)}")

    def parse(self, query: ListingQuery) -> ListingRequest:
        prefix = query.prefix or ""
        if len(prefix) > self.settings.max_prefix_length:
            raise ValidationError(f"prefix must be at most {self.settings.max_prefix_length} characters")
        if any(ord(ch) < 32 or ord(ch) == 127 for ch in prefix):
            raise ValidationError("prefix contains control characters")
        namespace = prefix.lstrip("/")
        if ".." in namespace.split("/"):
            raise ValidationError("prefix must not contain '..' segments")
        if namespace and not namespace.endswith("/"):
            namespace += "/"

        if query.max_keys is None or query.max_keys == "":
            page_size = MAX_PAGE_SIZE
        else:
            try:
                page_size = int(query.max_keys)
            except ValueError:
                raise ValidationError("maxKeys must be an integer") from None
        if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"maxKeys must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}")

        cursor = query.continuation_token or None
        if cursor is not None and len(cursor) > self.settings.max_token_length:
            raise ValidationError(
                f"continuationToken must be at most {self.settings.max_token_length} characters"
            )
        return ListingRequest(namespace=namespace, page_size=page_size, cursor=cursor)

    def _respond(self, entry: CacheEntry, cache_status: str) -> ListingResponse:
        headers = {
            "ETag": etag_header(entry.fingerprint),
            "X-Cache": cache_status,
            "X-Listing-Version": LISTING_VERSION,
        }
        if entry.is_truncated:
            headers["X-Pagination-Has-More"] = "true"
            if entry.next_cursor:
                headers["X-Pagination-Next-Token"] = entry.next_cursor
        body = [record.model_dump(by_alias=True) for record in entry.files]
        return ListingResponse(status_code=200, body=body, headers=headers)

    def _stale_entry(self, key: str) -> CacheEntry | None:
        try:
            return self.cache.get(key)
        except Exception:
            logger.exception("failed to read stale listing for key %s", key)
            return None

    def handle(self, query: ListingQuery) -> ListingResponse:
        if query.method.upper() != "GET":
            return ListingResponse(status_code=405, headers={"Allow": "GET"})

        self._require_config()
        request = self.parse(query)

        key = cache_key(request.namespace, request.page_size, request.cursor)
        self.cache.evict()

        entry = self.cache.get(key)
        if entry is not None and entry.is_fresh(self.cache.now()):
            if if_none_match_matches(query.if_none_match, entry.fingerprint):
                return ListingResponse(
                    status_code=304,
                    headers={
                        "ETag": etag_header(entry.fingerprint),
                        "X-Listing-Version": LISTING_VERSION,
                    },
                )
            return self._respond(entry, "HIT")

        fetcher = ListingFetcher(self.upstream, self.settings.public_url_base)
        try:
            result = fetcher.fetch(request.namespace, request.page_size, request.cursor)
        except Exception as exc:
            error = classify_upstream_error(exc, debug=self.settings.debug)
            if isinstance(error, UpstreamError):
                stale = self._stale_entry(key)
                if stale is not None:
                    logger.warning(
                        "listing %r failed (%s), serving stale entry from %.0fs ago",
                        request.namespace,
                        error.code,
                        self.cache.now() - stale.created_at,
                    )
                    return self._respond(stale, "STALE")
                logger.warning("listing %r failed: %s", request.namespace, error.code)
            if error is exc:
                raise
            raise error from exc

        entry = self.cache.put(
            key,
            result.files,
            fingerprint(result.files),
            self.settings.cache_ttl_seconds,
            is_truncated=result.is_truncated,
            next_cursor=result.next_cursor,
        )
        return self._respond(entry, "MISS")
