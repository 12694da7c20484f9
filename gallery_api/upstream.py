import logging
import threading

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, HTTPClientError, NoCredentialsError
from botocore.exceptions import ConnectionError as BotoConnectionError

from gallery_api.config import Settings
from gallery_api.errors import (
    ConfigError,
    ListingError,
    UnknownError,
    UpstreamAccessDenied,
    UpstreamNotFound,
    UpstreamTransient,
    ValidationError,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchBucket", "NoSuchKey", "404"}
ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AllAccessDisabled",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "403",
}
TRANSIENT_CODES = {
    "InternalError",
    "ServiceUnavailable",
    "SlowDown",
    "RequestTimeout",
    "Throttling",
    "ThrottlingException",
}


class S3ListingClient:
    """Thin boto3 wrapper around ``list_objects_v2``.

    The boto3 client is built on first use so that a missing setting is
    reported per request rather than at import time.
    """

    def __init__(
        self,
        bucket_name: str | None,
        region_name: str | None,
        endpoint_url: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        max_attempts: int = 2,
        connect_timeout: float = 2.0,
        read_timeout: float = 5.0,
    ):
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self._credentials = (aws_access_key_id, aws_secret_access_key)
        self.max_attempts = max_attempts
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._client = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ListingClient":
        return cls(
            bucket_name=settings.s3_bucket_name,
            region_name=settings.aws_region,
            endpoint_url=settings.aws_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            max_attempts=settings.upstream_max_attempts,
            connect_timeout=settings.upstream_connect_timeout,
            read_timeout=settings.upstream_read_timeout,
        )

    def _get_client(self):
        with self._lock:
            if self._client is not None:
                return self._client

            missing = [
                name
                for name, value in (
                    ("s3_bucket_name", self.bucket_name),
                    ("aws_region", self.region_name),
                )
                if not value
            ]
            if missing:
                raise ConfigError(f"missing settings: {', '.join(missing)}")

            config = Config(
                connect_timeout=self.connect_timeout,
                read_timeout=self.read_timeout,
                retries={"total_max_attempts": self.max_attempts, "mode": "standard"},
            )
            kwargs = {"config": config, "region_name": self.region_name}
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            access_key, secret_key = self._credentials
            if access_key and secret_key:
                kwargs["aws_access_key_id"] = access_key
                kwargs["aws_secret_access_key"] = secret_key

            self._client = boto3.client("s3", **kwargs)
            logger.info("created S3 client for bucket %s", self.bucket_name)
            return self._client

    def list_objects(self, prefix: str, max_keys: int, continuation_token: str | None = None) -> dict:
        kwargs = {"Bucket": self.bucket_name, "Prefix": prefix, "MaxKeys": max_keys}
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        return self._get_client().list_objects_v2(**kwargs)


def classify_upstream_error(exc: Exception, debug: bool = False) -> ListingError:
    """Map a failure of the listing call onto the service error taxonomy."""
    if isinstance(exc, ListingError):
        return exc
    if isinstance(exc, NoCredentialsError):
        return ConfigError("no credentials available for the image store")
    if isinstance(exc, (BotoConnectionError, HTTPClientError)):
        return UpstreamTransient()
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", "Unknown"))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if code in NOT_FOUND_CODES:
            return UpstreamNotFound()
        if code in ACCESS_DENIED_CODES:
            return UpstreamAccessDenied()
        if code == "InvalidArgument":
            return ValidationError("invalid continuationToken")
        if code in TRANSIENT_CODES or status >= 500:
            return UpstreamTransient()

    logger.debug("unclassified upstream failure: %r", exc)
    if debug:
        return UnknownError(f"failed to fetch images: {exc}")
    return UnknownError()
