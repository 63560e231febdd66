"""
Twilio Numbers Service
======================
This script handles all direct interactions with the Twilio phone number APIs.

Key Functionality:
- Lists available local numbers by exact number, area code or state.
- Purchases a literal number, or any number in an area code.
- Lists numbers already owned by the account (reconciliation after an
  ambiguous purchase).
- Translates Twilio error codes into the rejection kinds the acquisition
  flow understands, so nothing else in the app matches raw Twilio codes.

Every call goes through the async HTTP client so that many searches and
purchases can share one event loop.
"""

import asyncio
from typing import List, Optional

import aiohttp
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client

from config import CredentialPair
from services.errors import ProviderRejected, ProviderUnavailable, RejectionKind
from services.search import ScopeFilter, SearchScope
from utils.logger import log_error, log_info

# Twilio error 21452: "No phone numbers found in area code"
AREA_CODE_EXHAUSTED_CODES = {21452}
# Twilio error 21422: "PhoneNumber requested is not available"
NUMBER_UNAVAILABLE_CODES = {21422}

# Include numbers that need an address on file
ADDRESS_FILTERS = {
    "exclude_all_address_required": False,
    "exclude_local_address_required": False,
    "exclude_foreign_address_required": False,
}

DEFAULT_LIMIT = 20


def create_client(credentials: CredentialPair) -> Client:
    """
    Builds an async-capable Twilio client.

    If the pair is empty, the Twilio library falls back to the
    TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN environment variables.
    """
    http_client = AsyncTwilioHttpClient()
    return Client(credentials.sid, credentials.token, http_client=http_client)


def translate_rejection(error: TwilioRestException) -> Exception:
    """
    Maps a Twilio REST error onto ProviderRejected or ProviderUnavailable.

    Server-side errors (5xx) say nothing about whether the request took
    effect, so they are reported as unavailable rather than rejected.
    """
    reason = error.msg or str(error)
    if error.status and error.status >= 500:
        return ProviderUnavailable(f"Twilio returned {error.status}: {reason}")
    if error.code in AREA_CODE_EXHAUSTED_CODES:
        kind = RejectionKind.AREA_CODE_EXHAUSTED
    elif error.code in NUMBER_UNAVAILABLE_CODES:
        kind = RejectionKind.NUMBER_UNAVAILABLE
    else:
        kind = RejectionKind.OTHER
    return ProviderRejected(kind, reason, error.code)


def scope_params(scope: ScopeFilter) -> dict:
    if scope.scope is SearchScope.EXACT:
        return {"contains": scope.value}
    if scope.scope is SearchScope.AREA_CODE:
        return {"area_code": int(scope.value)}
    return {"in_region": scope.value}


class TwilioNumbers:
    """Inventory query, purchase and ownership lookups for one Twilio account."""

    def __init__(self, client: Client, limit: int = DEFAULT_LIMIT):
        self.client = client
        self.limit = limit

    async def query(self, country: str, scope: ScopeFilter) -> List[str]:
        """
        Lists available local numbers matching the scope.

        Returns:
            list: E.164 numbers, in the order Twilio returned them.
        """
        params = {**scope_params(scope), **ADDRESS_FILTERS}
        try:
            numbers = await self.client.available_phone_numbers(country).local.list_async(
                limit=self.limit, **params
            )
        except TwilioRestException as e:
            log_error(f"Twilio rejected inventory query for {scope}", str(e))
            raise translate_rejection(e) from e
        except (TwilioException, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            log_error(f"Inventory query for {scope} failed", str(e))
            raise ProviderUnavailable(str(e)) from e
        return [n.phone_number for n in numbers]

    async def buy(self, phone_number: Optional[str] = None, area_code: Optional[str] = None) -> str:
        """
        Purchases a number.

        Args:
            phone_number (str, optional): Literal E.164 number to buy.
            area_code (str, optional): Buy any number in this area code instead.

        Returns:
            str: The purchased number, as echoed by Twilio.

        Raises:
            ProviderRejected: Twilio refused the purchase.
            ProviderUnavailable: The outcome of the request is unknown.
        """
        if bool(phone_number) == bool(area_code):
            raise ValueError("Exactly one of phone_number or area_code is required")

        kwargs = {"phone_number": phone_number} if phone_number else {"area_code": area_code}
        try:
            purchased = await self.client.incoming_phone_numbers.create_async(**kwargs)
        except TwilioRestException as e:
            raise translate_rejection(e) from e
        except (TwilioException, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise ProviderUnavailable(str(e)) from e

        log_info("Purchased Twilio Number", f"Number: {purchased.phone_number}, SID: {purchased.sid}")
        return purchased.phone_number

    async def owned(self, phone_number: Optional[str] = None, area_code: Optional[str] = None) -> List[str]:
        """
        Lists numbers owned by this account, filtered by number or area code.

        Twilio matches partial numbers, so an area code becomes "+1<code>".
        """
        filters = {}
        if phone_number:
            filters["phone_number"] = phone_number
        elif area_code:
            filters["phone_number"] = f"+1{area_code}"
        try:
            numbers = await self.client.incoming_phone_numbers.list_async(**filters)
        except TwilioRestException as e:
            raise translate_rejection(e) from e
        except (TwilioException, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise ProviderUnavailable(str(e)) from e
        return [n.phone_number for n in numbers]

    async def close(self):
        await self.client.http_client.close()
