from typing import Iterable, Dict, Any, Optional
from fastapi import Request, HTTPException


async def parse_incoming_payload(
    request: Request,
    required_fields: Iterable[str],
    optional_fields: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """
    Normalize purchase payloads from form, JSON, or query params.

    Callers send either JSON bodies or form posts. This helper accepts all
    supported formats and enforces required fields with a clear error message
    instead of the generic "Field required" validation error.
    """
    data: Dict[str, Any] = {}

    content_type = request.headers.get("content-type", "").lower()

    if "application/json" in content_type:
        try:
            body = await request.json()
            data = body if isinstance(body, dict) else {}
        except ValueError:
            data = {}

    # Fallback to form data (x-www-form-urlencoded)
    if not data and "form" in content_type:
        form = await request.form()
        data = {k: v for k, v in form.items()}

    # Merge query params without overwriting body values
    for key, value in request.query_params.items():
        data.setdefault(key, value)

    missing = [field for field in required_fields if not data.get(field)]
    if missing:
        raise HTTPException(
            status_code=422,
            detail=f"Missing required field(s): {', '.join(missing)}",
        )

    # Limit output to only the fields we expect if optional_fields provided
    if optional_fields is not None:
        allowed = set(required_fields) | set(optional_fields)
        return {k: v for k, v in data.items() if k in allowed}

    return data


def first_present(payload: Dict[str, Any], aliases: Iterable[str]) -> Optional[str]:
    """
    First non-empty value among `aliases`, trimmed.

    Keys are also matched after stripping spaces/underscores and lowercasing,
    so "Near Phone Number" and "nearPhoneNumber" both hit "near_phone_number".
    """
    normalized = {k.replace(" ", "").replace("_", "").lower(): v for k, v in payload.items()}
    for alias in aliases:
        value = payload.get(alias) or normalized.get(alias.replace("_", "").lower())
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
