import os
import sys

import pytest
from fastapi.testclient import TestClient

# Ensure we can import "billing_api.*" both locally and inside the backend container
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
CANDIDATE_PATHS = [
    os.path.join(REPO_ROOT, "backend"),  # host repo layout
    REPO_ROOT,  # container layout where /app/billing_api exists
]
for p in CANDIDATE_PATHS:
    if os.path.isdir(p) and p not in sys.path:
        sys.path.insert(0, p)

from backend.main import create_app  # noqa: E402
from billing_api.core.errors import AppError, MetadataValidationError  # noqa: E402
from billing_api.core.guards import is_validation_error  # noqa: E402
from billing_api.schemas.metadata import (  # noqa: E402
    PaymentMetadata,
    ProductMetadata,
    SubscriptionRecordMetadata,
    parse_metadata,
    parse_typed_metadata,
    validate_payment_metadata,
    validate_product_metadata,
    validate_subscription_metadata,
    validate_user_metadata,
)


PRODUCT = {
    "features": ["priority support", "gpt-4o"],
    "tier": "pro",
    "popular": True,
    "messagesPerMonth": 5000,
    "aiModelsLimit": 8,
    "conversationsPerMonth": 300,
    "createdAt": "2024-02-01T08:30:00Z",
    "version": 2,
}

PAYMENT = {
    "source": "web",
    "gateway": "zarinpal",
    "currency": "IRR",
    "fees": 0,
    "exchangeRate": 1.5,
}


@pytest.fixture()
def client():
    return TestClient(create_app())


def test_valid_product_metadata_round_trips():
    result = validate_product_metadata(PRODUCT)
    assert isinstance(result, ProductMetadata)
    assert result.messages_per_month == 5000
    assert result.to_dict() == PRODUCT


def test_missing_field_raises_with_validation_context():
    data = dict(PRODUCT)
    data.pop("tier")
    with pytest.raises(MetadataValidationError) as excinfo:
        validate_product_metadata(data)

    err = excinfo.value
    assert isinstance(err, AppError)
    assert err.message.startswith("Product metadata validation failed")
    assert "tier" in err.message
    assert is_validation_error(err.context)
    assert err.context.schema_name == "ProductMetadata"
    assert [fe.field for fe in err.context.field_errors] == ["tier"]
    assert err.status_code == 422


def test_payment_data_is_not_product_metadata():
    with pytest.raises(MetadataValidationError) as excinfo:
        validate_product_metadata(PAYMENT)
    assert excinfo.value.message.startswith("Product metadata validation failed")

    assert isinstance(validate_payment_metadata(PAYMENT), PaymentMetadata)


@pytest.mark.parametrize(
    "patch",
    [
        {"currency": "US"},
        {"currency": "EURO"},
        {"fees": -1},
        {"exchangeRate": 0},
        {"source": "fax"},
        {"createdAt": "2024-13-01T00:00:00Z"},
        {"createdAt": "2024-01-01 10:00:00"},
        {"updatedAt": "2024-01-01T10:00:00+03:30"},
        {"version": 0},
    ],
)
def test_payment_metadata_rejections(patch):
    with pytest.raises(MetadataValidationError) as excinfo:
        validate_payment_metadata({**PAYMENT, **patch})
    assert excinfo.value.message.startswith("Payment metadata validation failed")


@pytest.mark.parametrize(
    "patch",
    [
        {"popular": "true"},
        {"popular": 1},
        {"messagesPerMonth": "5000"},
        {"aiModelsLimit": 8.0},
        {"conversationsPerMonth": "300"},
        {"version": "2"},
        {"features": "priority support"},
    ],
)
def test_product_metadata_values_are_not_coerced(patch):
    with pytest.raises(MetadataValidationError) as excinfo:
        validate_product_metadata({**PRODUCT, **patch})
    assert excinfo.value.message.startswith("Product metadata validation failed")
    assert parse_typed_metadata({**PRODUCT, **patch}, ProductMetadata) is None


def test_nested_and_tagged_values_are_not_coerced():
    with pytest.raises(MetadataValidationError):
        validate_subscription_metadata({"planType": "monthly", "autoRenewal": "yes"})
    with pytest.raises(MetadataValidationError):
        validate_user_metadata({"preferences": {"language": "fa", "timezone": "UTC", "notifications": "false"}})
    assert parse_metadata({"type": "payment", "retryAttempts": "3"}).success is False


def test_validate_route_rejects_string_typed_numbers(client):
    r = client.post("/api/v1/metadata/product/validate", json={**PRODUCT, "messagesPerMonth": "5000"})
    assert r.status_code == 422, r.text
    assert r.json()["detail"]["fieldErrors"][0]["field"] == "messagesPerMonth"


def test_subscription_metadata():
    ok = validate_subscription_metadata(
        {"planType": "yearly", "autoRenewal": False, "trialEnd": "2025-01-01T00:00:00.000Z"}
    )
    assert ok.plan_type == "yearly"
    with pytest.raises(MetadataValidationError):
        validate_subscription_metadata({"planType": "weekly", "autoRenewal": True})
    with pytest.raises(MetadataValidationError):
        validate_subscription_metadata({"planType": "monthly", "autoRenewal": True, "discountAmount": -3})


def test_user_metadata_preferences():
    ok = validate_user_metadata(
        {"preferences": {"language": "fa", "timezone": "Asia/Tehran", "notifications": True}, "loginCount": 0}
    )
    assert ok.preferences.language == "fa"
    assert ok.login_count == 0

    with pytest.raises(MetadataValidationError) as excinfo:
        validate_user_metadata({"preferences": {"language": "fas", "timezone": "UTC", "notifications": True}})
    assert excinfo.value.message.startswith("User metadata validation failed")
    with pytest.raises(MetadataValidationError):
        validate_user_metadata({"loginCount": -1})


def test_unknown_keys_are_dropped():
    result = validate_payment_metadata({**PAYMENT, "internalNote": "x"})
    assert "internalNote" not in result.to_dict()


def test_parse_typed_metadata_returns_none_on_mismatch():
    assert parse_typed_metadata(PAYMENT, ProductMetadata) is None
    parsed = parse_typed_metadata(PAYMENT, PaymentMetadata)
    assert parsed is not None and parsed.currency == "IRR"


def test_parse_tagged_metadata():
    result = parse_metadata(
        {
            "type": "subscription",
            "autoRenewal": True,
            "planChangeHistory": [
                {
                    "fromProductId": "p1",
                    "toProductId": "p2",
                    "fromPrice": 10,
                    "toPrice": 20,
                    "changedAt": "2024-03-01T00:00:00Z",
                    "effectiveDate": "2024-04-01T00:00:00Z",
                }
            ],
        }
    )
    assert result.success is True
    assert isinstance(result.data, SubscriptionRecordMetadata)
    assert result.data.plan_change_history[0].to_price == 20
    assert result.error is None

    failed = parse_metadata({"type": "payment", "paymentMethod": "cash"})
    assert failed.success is False
    assert failed.data is None
    assert failed.error.startswith("Invalid metadata structure: ")

    assert parse_metadata({"category": "x"}).success is False


def test_validate_route_accepts_valid_metadata(client):
    r = client.post("/api/v1/metadata/product/validate", json=PRODUCT)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["kind"] == "product"
    assert body["metadata"] == PRODUCT


def test_validate_route_returns_422_with_context(client):
    r = client.post(
        "/api/v1/metadata/payment/validate",
        json={**PAYMENT, "currency": "US"},
        headers={"X-Request-ID": "req-meta-1"},
    )
    assert r.status_code == 422, r.text
    body = r.json()
    assert body["error"] == "validation_error"
    assert body["code"] == 422
    assert body["error_code"] == "VALIDATION_ERROR"
    assert body["message"].startswith("Payment metadata validation failed")
    assert body["correlation_id"] == "req-meta-1"
    assert body["detail"]["type"] == "validation"
    assert body["detail"]["schemaName"] == "PaymentMetadata"
    assert body["detail"]["fieldErrors"][0]["field"] == "currency"


def test_validate_route_rejects_unknown_kind(client):
    r = client.post("/api/v1/metadata/invoice/validate", json={})
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"


def test_parse_route(client):
    r = client.post("/api/v1/metadata/parse", json={"type": "user", "timezone": "UTC"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["type"] == "user"

    r = client.post("/api/v1/metadata/parse", json={"type": "nope"})
    assert r.status_code == 200
    assert r.json()["success"] is False
