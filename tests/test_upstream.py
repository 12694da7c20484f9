import boto3
import pytest
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)
from moto import mock_aws

from gallery_api.config import Settings
from gallery_api.errors import (
    ConfigError,
    UnknownError,
    UpstreamAccessDenied,
    UpstreamNotFound,
    UpstreamTransient,
    ValidationError,
)
from gallery_api.upstream import S3ListingClient, classify_upstream_error


def client_error(code, status=400):
    return ClientError(
        {"Error": {"Code": code, "Message": "boom"}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "ListObjectsV2",
    )


@pytest.fixture
def s3_env(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    with mock_aws():
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="gallery")
        yield s3


@pytest.mark.parametrize(
    "exc, expected",
    [
        (client_error("NoSuchBucket", 404), UpstreamNotFound),
        (client_error("AccessDenied", 403), UpstreamAccessDenied),
        (client_error("InvalidAccessKeyId", 403), UpstreamAccessDenied),
        (client_error("InvalidArgument"), ValidationError),
        (client_error("SlowDown", 503), UpstreamTransient),
        (client_error("SomethingNew", 502), UpstreamTransient),
        (client_error("SomethingNew", 400), UnknownError),
        (EndpointConnectionError(endpoint_url="https://s3.example.com"), UpstreamTransient),
        (ConnectTimeoutError(endpoint_url="https://s3.example.com"), UpstreamTransient),
        (ReadTimeoutError(endpoint_url="https://s3.example.com"), UpstreamTransient),
        (NoCredentialsError(), ConfigError),
        (ValueError("odd"), UnknownError),
    ],
)
def test_classify_upstream_error(exc, expected):
    assert isinstance(classify_upstream_error(exc), expected)


def test_not_found_and_access_denied_share_status():
    assert UpstreamNotFound.status_code == UpstreamAccessDenied.status_code == 404


def test_missing_bucket_raises_config_error_without_connecting():
    client = S3ListingClient(bucket_name=None, region_name="us-east-1")

    with pytest.raises(ConfigError) as exc_info:
        client.list_objects("album/", 10)
    assert "s3_bucket_name" in exc_info.value.message
    assert client._client is None


def test_missing_region_raises_config_error():
    client = S3ListingClient(bucket_name="gallery", region_name=None)

    with pytest.raises(ConfigError):
        client.list_objects("album/", 10)


def test_client_is_built_once_with_retry_and_timeouts(s3_env):
    settings = Settings(
        s3_bucket_name="gallery",
        public_url_base="https://cdn.example.com",
        aws_region="us-east-1",
        upstream_connect_timeout=1.5,
        upstream_read_timeout=4,
    )
    client = S3ListingClient.from_settings(settings)

    first = client._get_client()
    assert client._get_client() is first
    assert first.meta.config.connect_timeout == 1.5
    assert first.meta.config.read_timeout == 4
    assert first.meta.config.retries["total_max_attempts"] == 2
    assert first.meta.config.retries["mode"] == "standard"


def test_list_objects_against_store(s3_env):
    for key in ("album/a.jpg", "album/b.jpg", "other/c.jpg"):
        s3_env.put_object(Bucket="gallery", Key=key, Body=b"x")
    client = S3ListingClient(bucket_name="gallery", region_name="us-east-1")

    page = client.list_objects("album/", 1)
    assert [obj["Key"] for obj in page["Contents"]] == ["album/a.jpg"]
    assert page["IsTruncated"] is True

    rest = client.list_objects("album/", 1, page["NextContinuationToken"])
    assert [obj["Key"] for obj in rest["Contents"]] == ["album/b.jpg"]
    assert rest["IsTruncated"] is False
