import json
import os
import sys

import pytest

# Ensure we can import "billing_api.*" both locally and inside the backend container
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
CANDIDATE_PATHS = [
    os.path.join(REPO_ROOT, "backend"),  # host repo layout
    REPO_ROOT,  # container layout where /app/billing_api exists
]
for p in CANDIDATE_PATHS:
    if os.path.isdir(p) and p not in sys.path:
        sys.path.insert(0, p)

from billing_api.core.errors import AppError  # noqa: E402
from billing_api.core.guards import is_zarinpal_error  # noqa: E402
from billing_api.schemas.errors import ErrorCode  # noqa: E402
from billing_api.services.zarinpal_errors import (  # noqa: E402
    get_zarinpal_user_message,
    is_zarinpal_auth_error,
    is_zarinpal_service_error,
    map_zarinpal_status,
    parse_zarinpal_response,
    raise_zarinpal_error,
)


@pytest.mark.parametrize(
    "code,status",
    [(-74, 401), (-80, 403), (-9, 400), (-11, 503), (-12, 429), (-31, 404), (-53, 410), (-999, 400)],
)
def test_status_mapping(code, status):
    assert map_zarinpal_status(code) == status


def test_code_classes():
    assert is_zarinpal_auth_error(-74)
    assert not is_zarinpal_auth_error(-9)
    assert is_zarinpal_service_error(-30)
    assert not is_zarinpal_service_error(-74)


def test_user_messages():
    msg = get_zarinpal_user_message(-12)
    assert msg.severity == "warning"
    assert "Too many" in msg.user_message
    assert get_zarinpal_user_message(101).severity == "info"

    fallback = get_zarinpal_user_message(12345)
    assert fallback.severity == "error"
    assert fallback.action_required


def test_parse_gateway_error_body():
    body = json.dumps({"data": [], "errors": {"code": "-9", "message": "The input params invalid", "validations": []}})
    parsed = parse_zarinpal_response(body)
    assert parsed.is_error is True
    assert parsed.error.code == -9
    assert parsed.error.message == "The input params invalid"


def test_parse_success_body():
    body = json.dumps({"data": {"code": 100, "authority": "A00000000000000000000000000123456789"}, "errors": []})
    parsed = parse_zarinpal_response(body)
    assert parsed.is_error is False
    assert parsed.error is None
    assert parsed.data["code"] == 100


@pytest.mark.parametrize(
    "body",
    [
        "<html>502 Bad Gateway</html>",
        "[]",
        json.dumps({"errors": []}),
        json.dumps({"data": {}, "errors": {"unexpected": True}}),
    ],
)
def test_parse_unusable_bodies_are_errors_without_detail(body):
    parsed = parse_zarinpal_response(body)
    assert parsed.is_error is True
    assert parsed.error is None


def test_raise_for_gateway_error():
    body = json.dumps({"data": [], "errors": {"code": -74, "message": "Invalid merchant", "validations": []}})
    with pytest.raises(AppError) as excinfo:
        raise_zarinpal_error("request", 200, body, authority="A0001")

    err = excinfo.value
    assert err.message == "ZarinPal request failed"
    assert err.status_code == 401
    assert err.code is ErrorCode.ZARINPAL_ERROR
    assert err.retryable is True
    assert is_zarinpal_error(err.context)
    assert err.context.zarinpal_status == -74
    assert err.context.authority == "A0001"
    assert err.context.operation == "request"
    assert err.context.additional_fields == {"originalHttpStatus": 200, "gatewayMessage": "Invalid merchant"}


def test_raise_for_unparseable_response():
    with pytest.raises(AppError) as excinfo:
        raise_zarinpal_error("verify", 504, "upstream timeout")

    err = excinfo.value
    assert err.message == "ZarinPal verify failed: Invalid response"
    assert err.status_code == 502
    assert err.context.zarinpal_status is None
    assert err.context.additional_fields["responseBody"] == "upstream timeout"
