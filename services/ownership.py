"""
Ownership Reconciliation
========================
After an AmbiguousOutcome the caller must find out whether the purchase
actually happened before trying again. This looks up the numbers the
account already owns, by literal number or by area code.
"""

import asyncio
from typing import List, Optional, Protocol

from services.errors import MissingInput, ProviderError, ProviderRejected, ProviderUnavailable
from utils.logger import log_error, log_info


class OwnedNumbers(Protocol):
    async def owned(self, phone_number: Optional[str] = None, area_code: Optional[str] = None) -> List[str]: ...


async def find_owned(
    owned: OwnedNumbers,
    phone_number: Optional[str] = None,
    area_code: Optional[str] = None,
    timeout: Optional[float] = None,
) -> List[str]:
    """
    Returns owned numbers matching the literal number or area code.

    Raises:
        MissingInput: Neither filter was given.
        ProviderError: Twilio could not be queried.
    """
    if not phone_number and not area_code:
        raise MissingInput("phone_number or area_code is required")

    selector = phone_number or f"area code {area_code}"
    try:
        numbers = await asyncio.wait_for(owned.owned(phone_number=phone_number, area_code=area_code), timeout)
    except asyncio.TimeoutError as e:
        log_error(f"Ownership lookup timed out for {selector}")
        raise ProviderError(f"Ownership lookup timed out for {selector}") from e
    except (ProviderRejected, ProviderUnavailable) as e:
        log_error(f"Ownership lookup failed for {selector}", str(e))
        raise ProviderError(str(e)) from e

    log_info(f"Found {len(numbers)} owned number(s) for {selector}")
    return numbers
