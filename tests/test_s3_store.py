from datetime import datetime, timezone
from unittest import mock

import boto3
import pytest
from botocore.exceptions import ReadTimeoutError
from botocore.stub import Stubber

from shared.errors import RemoteStoreError, RemoteStoreTimeout
from shared.s3 import S3MediaStore


@pytest.fixture
def s3():
    client = boto3.client("s3", region_name="us-west-2")
    with Stubber(client) as stub:
        yield client, stub
        stub.assert_no_pending_responses()


def test_upload_returns_key_and_public_url(s3, tmp_path):
    client, stub = s3
    path = tmp_path / "house.jpg"
    path.write_bytes(b"jpeg")
    stub.add_response("put_object", {})

    ref = S3MediaStore(client, "media", "us-west-2").upload(str(path), "listings")

    assert ref.remote_id.startswith("listings/") and ref.remote_id.endswith(".jpg")
    assert ref.remote_url == f"https://media.s3.us-west-2.amazonaws.com/{ref.remote_id}"


def test_public_base_url_overrides_bucket_url(s3, tmp_path):
    client, stub = s3
    path = tmp_path / "a.png"
    path.write_bytes(b"png")
    stub.add_response("put_object", {})

    ref = S3MediaStore(client, "media", "us-west-2", public_base_url="https://cdn.example/").upload(str(path), "l")

    assert ref.remote_url == f"https://cdn.example/{ref.remote_id}"


def test_upload_error_is_remote_store_error(s3, tmp_path):
    client, stub = s3
    path = tmp_path / "a.jpg"
    path.write_bytes(b"x")
    stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)

    with pytest.raises(RemoteStoreError):
        S3MediaStore(client, "media", "us-west-2").upload(str(path), "listings")


def test_delete_is_idempotent(s3):
    client, stub = s3
    params = {"Bucket": "media", "Key": "listings/a.jpg"}
    stub.add_response("delete_object", {}, params)
    stub.add_client_error("delete_object", service_error_code="NoSuchKey", http_status_code=404,
                          expected_params=params)

    store = S3MediaStore(client, "media", "us-west-2")
    store.delete("listings/a.jpg")
    store.delete("listings/a.jpg")


def test_delete_other_errors_propagate(s3):
    client, stub = s3
    stub.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(RemoteStoreError) as exc:
        S3MediaStore(client, "media", "us-west-2").delete("listings/a.jpg")
    assert not isinstance(exc.value, RemoteStoreTimeout)


def test_timeouts_are_their_own_kind(tmp_path):
    client = mock.Mock()
    client.delete_object.side_effect = ReadTimeoutError(endpoint_url="https://media.s3")
    with pytest.raises(RemoteStoreTimeout):
        S3MediaStore(client, "media", "us-west-2").delete("listings/a.jpg")


def test_iter_objects_lists_folder(s3):
    client, stub = s3
    when = datetime(2026, 1, 1, tzinfo=timezone.utc)
    stub.add_response(
        "list_objects_v2",
        {"Contents": [{"Key": "listings/a.jpg", "LastModified": when}], "IsTruncated": False},
        {"Bucket": "media", "Prefix": "listings/"},
    )

    objects = list(S3MediaStore(client, "media", "us-west-2").iter_objects("listings"))

    assert [(o.remote_id, o.created_at) for o in objects] == [("listings/a.jpg", when)]
