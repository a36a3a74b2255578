from typing import Any, Callable, Dict, Literal

from fastapi import APIRouter, Body

from billing_api.core.logging import api_logger
from billing_api.schemas.metadata import (
    MetadataParseResult,
    MetadataValidateResponse,
    parse_metadata,
    validate_payment_metadata,
    validate_product_metadata,
    validate_subscription_metadata,
    validate_user_metadata,
)

router = APIRouter()

MetadataKind = Literal["product", "payment", "subscription", "user"]

_VALIDATORS: Dict[str, Callable[[Any], Any]] = {
    "product": validate_product_metadata,
    "payment": validate_payment_metadata,
    "subscription": validate_subscription_metadata,
    "user": validate_user_metadata,
}


@router.post("/{kind}/validate", response_model=MetadataValidateResponse)
def validate_metadata(kind: MetadataKind, payload: Dict[str, Any] = Body(...)):
    # MetadataValidationError propagates to the AppError handler as a 422
    metadata = _VALIDATORS[kind](payload)
    api_logger.debug("Metadata accepted", {"kind": kind, "fieldCount": len(payload)})
    return MetadataValidateResponse(kind=kind, metadata=metadata.to_dict())


@router.post("/parse", response_model=MetadataParseResult)
def parse_tagged_metadata(payload: Dict[str, Any] = Body(...)):
    return parse_metadata(payload)
