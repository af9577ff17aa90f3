import asyncio

import httpx
import pytest
from conftest import FakeStorageError

from pizzeria_media.core.errors import (
    ClassifiedError,
    ErrorKind,
    classify,
    log_upload_error,
)


class StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.mark.parametrize(
    "error, layer, kind, retryable",
    [
        (FakeStorageError("Bucket not found", 404), None, ErrorKind.STORAGE, False),
        (Exception("object does not exist"), "storage", ErrorKind.STORAGE, False),
        (Exception("permission denied for object"), "storage", ErrorKind.STORAGE, False),
        (FakeStorageError("unauthorized", 401), "storage", ErrorKind.STORAGE, False),
        (Exception("The object exceeded the maximum allowed size"), "storage", ErrorKind.VALIDATION, False),
        (Exception("Payload too large"), None, ErrorKind.VALIDATION, False),
        (FakeStorageError("Internal Server Error", 500), "storage", ErrorKind.STORAGE, True),
        (Exception("storage backend hiccup"), None, ErrorKind.STORAGE, True),
        (Exception('relation "gallery_images" does not exist'), None, ErrorKind.DATABASE, True),
        (Exception("column image_url is missing"), None, ErrorKind.DATABASE, True),
        (Exception("duplicate key"), "database", ErrorKind.DATABASE, True),
        (
            Exception('column "storage_path" of relation "gallery_images" does not exist'),
            "database",
            ErrorKind.DATABASE,
            True,
        ),
        (Exception('null value in column "bucket" violates not-null constraint'), "database", ErrorKind.DATABASE, True),
        (Exception('column "file_size" of relation "gallery_images" does not exist'), "database", ErrorKind.DATABASE, True),
        (Exception("network unreachable"), None, ErrorKind.NETWORK, True),
        (Exception("failed to fetch"), None, ErrorKind.NETWORK, True),
        (asyncio.TimeoutError(), None, ErrorKind.NETWORK, True),
        (asyncio.TimeoutError(), "storage", ErrorKind.NETWORK, True),
        (asyncio.TimeoutError(), "database", ErrorKind.NETWORK, True),
        (httpx.ConnectError("refused"), None, ErrorKind.NETWORK, True),
        (StatusError("Bad Request", 400), None, ErrorKind.VALIDATION, False),
        (StatusError("Too Many Requests", 429), None, ErrorKind.VALIDATION, True),
        (StatusError("Service Unavailable", 503), None, ErrorKind.NETWORK, True),
        (Exception("boom"), None, ErrorKind.UNKNOWN, True),
    ],
)
def test_classification(error, layer, kind, retryable):
    classified = classify(error, layer)

    assert classified.kind is kind
    assert classified.retryable is retryable
    assert classified.message
    assert classified.original_error is error


def test_not_found_wins_over_generic_storage():
    classified = classify(FakeStorageError("Bucket not found", 500), "storage")

    assert classified.kind is ErrorKind.STORAGE
    assert not classified.retryable
    assert "administrator" in classified.message


def test_http_status_error_uses_response_status():
    request = httpx.Request("POST", "https://example.supabase.co/rest/v1/x")
    response = httpx.Response(502, request=request)
    error = httpx.HTTPStatusError("Bad Gateway", request=request, response=response)

    classified = classify(error)

    assert classified.kind is ErrorKind.NETWORK
    assert classified.status_code == 502


def test_string_status_is_understood():
    error = FakeStorageError("slow down")
    error.status = "429"

    classified = classify(error)

    assert classified.retryable
    assert classified.status_code == 429


def test_none_is_unknown_and_not_retryable():
    classified = classify(None)

    assert classified.kind is ErrorKind.UNKNOWN
    assert not classified.retryable


def test_classified_errors_pass_through():
    original = ClassifiedError(ErrorKind.NETWORK, "Network error.", True)

    assert classify(original) is original


def test_raw_text_is_not_leaked():
    classified = classify(Exception("pq: internal detail token=abc123"))

    assert "abc123" not in classified.message
    assert classified.message == "Upload failed. Please try again."


def test_to_dict_omits_original_error():
    classified = classify(Exception("column secret_col missing"))

    assert classified.to_dict() == {
        "kind": "database",
        "message": classified.message,
        "retryable": True,
    }


def test_with_cleanup_copies_the_error():
    async def cleanup():
        return None

    original = classify(Exception("storage failure"))
    copy = original.with_cleanup(cleanup)

    assert copy.cleanup is cleanup
    assert original.cleanup is None
    assert (copy.kind, copy.message, copy.retryable) == (
        original.kind,
        original.message,
        original.retryable,
    )


def test_log_upload_error(caplog):
    error = classify(Exception("storage failure"))

    with caplog.at_level("ERROR", logger="pizzeria_media"):
        log_upload_error(error, file_name="pizza.png", upload_type="gallery")

    record = caplog.records[-1]
    assert record.error_kind == "storage"
    assert record.file_name == "pizza.png"


def test_log_upload_error_message_carries_context(caplog):
    error = classify(Exception("storage failure"), "storage")

    with caplog.at_level("ERROR", logger="pizzeria_media"):
        log_upload_error(error, file_name="pizza.png", upload_type="gallery")

    message = caplog.records[-1].getMessage()
    assert "storage" in message
    assert "storage failure" in message
    assert "file_name=pizza.png" in message
    assert "upload_type=gallery" in message


def test_catalog_column_error_is_not_reported_as_too_large():
    classified = classify(
        Exception('column "file_size" of relation "gallery_images" does not exist'),
        "database",
    )

    assert "too large" not in classified.message
    assert classified.retryable
