"""
Numbers Router
==============
HTTP surface over the acquisition flow.

Endpoints:
- GET /numbers/validate: Normalizes a reference number (E.164, area code, state).
- GET /numbers/available: Finds an available number near a reference number.
- POST /numbers/purchase: Buys a literal number or one near a reference number.
- GET /numbers/owned: Lists owned numbers, used to reconcile ambiguous purchases.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from services.acquisition import NumberAcquirer, NumberConstraint
from services.errors import (
    AmbiguousOutcome,
    NoAvailableNumber,
    NumberAcquisitionError,
    ProviderError,
    PurchaseRaceLost,
    PurchaseRejected,
    ValidationError,
)
from utils.logger import log_info
from utils.request_parser import first_present, parse_incoming_payload

router = APIRouter(prefix="/numbers")

NEAR_ALIASES = ["near_phone_number", "nearPhoneNumber", "reference"]
EXACT_ALIASES = ["exact_phone_number", "exactPhoneNumber"]


def get_acquirer(request: Request) -> NumberAcquirer:
    return request.app.state.acquirer


def to_http_error(error: NumberAcquisitionError) -> HTTPException:
    """Maps the acquisition error taxonomy onto HTTP status codes."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, NoAvailableNumber):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ProviderError):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, PurchaseRaceLost):
        return HTTPException(status_code=409, detail={"error": "race_lost", "message": str(error)})
    if isinstance(error, PurchaseRejected):
        return HTTPException(status_code=409, detail={"error": "rejected", "message": error.reason, "code": error.code})
    if isinstance(error, AmbiguousOutcome):
        # Callers must reconcile via /numbers/owned, not retry the purchase
        return HTTPException(
            status_code=504,
            detail={"error": "ambiguous_outcome", "message": str(error), "possibly_purchased": True},
        )
    return HTTPException(status_code=500, detail=str(error))


@router.get("/validate")
async def validate_number(request: Request, near_phone_number: Optional[str] = Query(None)):
    acquirer = get_acquirer(request)
    try:
        target = await acquirer.validate(near_phone_number)
    except NumberAcquisitionError as e:
        raise to_http_error(e)
    return {
        "number": target.e164_number,
        "code": target.country_code,
        "area_code": target.area_code,
        "state": target.region,
    }


@router.get("/available")
async def available_number(
    request: Request,
    near_phone_number: Optional[str] = Query(None),
    include_exact: bool = Query(False),
):
    """
    Finds an available number near the reference number without buying it.

    With include_exact=true the reference number itself is tried first.
    """
    acquirer = get_acquirer(request)
    try:
        number = await acquirer.search(NumberConstraint(near_phone_number or ""), include_exact=include_exact)
    except NumberAcquisitionError as e:
        raise to_http_error(e)
    return {"status": "success", "available_number": number}


@router.post("/purchase")
async def purchase_number(request: Request):
    """
    Purchases a phone number.

    Accepts either field in a JSON body, form body or query string:
    - exact_phone_number: buy this literal number, no search.
    - near_phone_number: buy a number in the same area code, falling back to
      the same state when the area code is exhausted.

    If both are given, exact_phone_number wins.
    """
    payload = await parse_incoming_payload(
        request,
        required_fields=[],
    )

    exact = first_present(payload, EXACT_ALIASES)
    near = first_present(payload, NEAR_ALIASES)

    if exact:
        constraint = NumberConstraint(exact, exact=True)
    elif near:
        constraint = NumberConstraint(near)
    else:
        provided_keys = ", ".join(sorted(payload.keys())) if payload else "none"
        raise HTTPException(
            status_code=422,
            detail=f"near_phone_number or exact_phone_number is required. Provided keys: {provided_keys}",
        )

    log_info(f"Purchase requested ({'exact' if constraint.exact else 'near'})", constraint.reference)

    acquirer = get_acquirer(request)
    try:
        number = await acquirer.purchase(constraint)
    except NumberAcquisitionError as e:
        raise to_http_error(e)
    return {"status": "success", "purchased_number": number}


@router.get("/owned")
async def owned_numbers(
    request: Request,
    phone_number: Optional[str] = Query(None),
    area_code: Optional[str] = Query(None),
):
    acquirer = get_acquirer(request)
    try:
        numbers = await acquirer.owned_numbers(phone_number=phone_number, area_code=area_code)
    except NumberAcquisitionError as e:
        raise to_http_error(e)
    return {"owned": bool(numbers), "numbers": numbers}
