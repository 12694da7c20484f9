"""Cache key and ETag derivation.

Both values hash a canonical JSON encoding: compact separators, UTF-8, and a
fixed positional field order, so equal inputs always produce equal bytes.

* cache key: ``[namespace, page_size, cursor | null]``
* fingerprint: ``[[name, fullUrl, thumbUrl], ...]`` in listing order
"""

import hashlib
import json
from collections.abc import Sequence

from gallery_api.models import MediaRecord


def _canonical(value) -> bytes:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _fingerprint_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


EMPTY_FINGERPRINT = _fingerprint_bytes(_canonical([]))


def cache_key(namespace: str, page_size: int, cursor: str | None) -> str:
    digest = hashlib.blake2b(_canonical([namespace, page_size, cursor]), digest_size=16)
    return digest.hexdigest()


def fingerprint(files: Sequence[MediaRecord]) -> str:
    if not files:
        return EMPTY_FINGERPRINT
    rows = [[record.name, record.full_url, record.thumb_url] for record in files]
    return _fingerprint_bytes(_canonical(rows))


def etag_header(value: str) -> str:
    return f'"{value}"'


def if_none_match_matches(header: str | None, current: str) -> bool:
    """Weak comparison of an ``If-None-Match`` header against a fingerprint.

    Accepts bare or quoted tags, ``W/`` prefixes, comma-separated lists and ``*``.
    """
    if not header:
        return False
    for candidate in header.split(","):
        tag = candidate.strip()
        if tag == "*":
            return True
        if tag.startswith("W/"):
            tag = tag[2:]
        if tag.strip('"') == current:
            return True
    return False
