"""
Acquisition Coordinator
=======================
Purchases a phone number, either a literal one (exact mode) or one near a
reference number (near mode).

Near mode runs a small state machine:

    START -> AREA_CODE_PURCHASE_ATTEMPTED -> SUCCEEDED
                                          -> REGION_SEARCH_ATTEMPTED -> REGION_PURCHASE_ATTEMPTED -> SUCCEEDED
                                                                                                  -> FAILED
                                          -> FAILED

No state is ever revisited, so a near-mode purchase issues at most two
purchase calls. The only recoverable rejection is "no numbers in this area
code"; every other failure reaches the caller.

Purchases are billable and non-idempotent. A purchase that times out or
fails in transport raises AmbiguousOutcome and is never retried here.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol

from services.area_codes import AreaCodeTable
from services.errors import (
    AmbiguousOutcome,
    MissingInput,
    NumberAcquisitionError,
    ProviderRejected,
    ProviderUnavailable,
    PurchaseRaceLost,
    PurchaseRejected,
    RejectionKind,
    SearchError,
)
from services.ownership import OwnedNumbers, find_owned
from services.search import InventoryQuery, SearchScope, search
from services.validator import NormalizedTarget, validate
from utils.logger import log_error, log_info, log_success


@dataclass(frozen=True)
class NumberConstraint:
    reference: str
    exact: bool = False


class NumberPurchaser(Protocol):
    async def buy(self, phone_number: Optional[str] = None, area_code: Optional[str] = None) -> str:
        """Purchases a literal number or any number in an area code; returns the purchased number."""
        ...


class PurchaseAudit(Protocol):
    """Blocking audit writes; the coordinator runs them in a worker thread."""

    def record_purchase(self, phone_number: str, reference: str, mode: str) -> None: ...

    def record_ambiguous(self, selector: str, reason: str) -> None: ...


# ---------------------------------------------------------
# State machine
# ---------------------------------------------------------

class State(Enum):
    START = "start"
    AREA_CODE_PURCHASE_ATTEMPTED = "area_code_purchase_attempted"
    REGION_SEARCH_ATTEMPTED = "region_search_attempted"
    REGION_PURCHASE_ATTEMPTED = "region_purchase_attempted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Outcome(Enum):
    BEGIN = "begin"
    BEGIN_SKIPPING_AREA_CODE = "begin_skipping_area_code"
    PURCHASED = "purchased"
    AREA_CODE_EXHAUSTED = "area_code_exhausted"
    REJECTED = "rejected"
    CANDIDATE_FOUND = "candidate_found"
    SEARCH_FAILED = "search_failed"


TRANSITIONS = {
    (State.START, Outcome.BEGIN): State.AREA_CODE_PURCHASE_ATTEMPTED,
    (State.START, Outcome.BEGIN_SKIPPING_AREA_CODE): State.REGION_SEARCH_ATTEMPTED,
    (State.AREA_CODE_PURCHASE_ATTEMPTED, Outcome.PURCHASED): State.SUCCEEDED,
    (State.AREA_CODE_PURCHASE_ATTEMPTED, Outcome.AREA_CODE_EXHAUSTED): State.REGION_SEARCH_ATTEMPTED,
    (State.AREA_CODE_PURCHASE_ATTEMPTED, Outcome.REJECTED): State.FAILED,
    (State.REGION_SEARCH_ATTEMPTED, Outcome.CANDIDATE_FOUND): State.REGION_PURCHASE_ATTEMPTED,
    (State.REGION_SEARCH_ATTEMPTED, Outcome.SEARCH_FAILED): State.FAILED,
    (State.REGION_PURCHASE_ATTEMPTED, Outcome.PURCHASED): State.SUCCEEDED,
    (State.REGION_PURCHASE_ATTEMPTED, Outcome.REJECTED): State.FAILED,
}

TERMINAL_STATES = (State.SUCCEEDED, State.FAILED)


def advance(state: State, outcome: Outcome) -> State:
    """
    Next state after observing `outcome` in `state`.

    Raises:
        ValueError: The outcome cannot happen in this state.
    """
    try:
        return TRANSITIONS[(state, outcome)]
    except KeyError:
        raise ValueError(f"No transition from {state.name} on {outcome.name}") from None


# ---------------------------------------------------------
# Coordinator
# ---------------------------------------------------------

class NumberAcquirer:
    """
    Validates, searches and purchases numbers against injected Twilio capabilities.

    The query and purchase capabilities are separate objects because Twilio
    issues separate read-scoped and write-scoped credentials.
    """

    def __init__(
        self,
        inventory: InventoryQuery,
        purchaser: NumberPurchaser,
        area_codes: AreaCodeTable,
        supported_country: str = "US",
        skip_area_code: bool = False,
        timeout: Optional[float] = None,
        audit: Optional[PurchaseAudit] = None,
        owned: Optional[OwnedNumbers] = None,
    ):
        self.inventory = inventory
        self.purchaser = purchaser
        self.area_codes = area_codes
        self.supported_country = supported_country
        self.skip_area_code = skip_area_code
        self.timeout = timeout
        self.audit = audit
        self.owned = owned

    async def validate(self, reference: Optional[str]) -> NormalizedTarget:
        return validate(reference, self.area_codes, self.supported_country)

    async def search(self, constraint: NumberConstraint, include_exact: bool = False) -> str:
        """
        Read-only lookup of an available number near the reference number.

        Args:
            constraint (NumberConstraint): Reference number to search near.
            include_exact (bool): Query for the reference number itself first.

        Returns:
            str: An available number (E.164).
        """
        target = await self.validate(constraint.reference)
        if include_exact:
            start = SearchScope.EXACT
        elif self.skip_area_code:
            start = SearchScope.REGION
        else:
            start = SearchScope.AREA_CODE
        return await search(target, self.inventory, start=start, timeout=self.timeout)

    async def owned_numbers(self, phone_number: Optional[str] = None, area_code: Optional[str] = None) -> List[str]:
        """Numbers the purchasing account already owns; used to reconcile an AmbiguousOutcome."""
        if self.owned is None:
            raise RuntimeError("No ownership lookup configured")
        return await find_owned(self.owned, phone_number=phone_number, area_code=area_code, timeout=self.timeout)

    async def purchase(self, constraint: NumberConstraint) -> str:
        """
        Purchases the literal number (exact mode) or a number near it (near mode).

        Returns:
            str: The purchased number (E.164).

        Raises:
            ValidationError: The reference number is unusable (near mode).
            PurchaseRejected: Twilio definitively refused, or no candidate exists.
            PurchaseRaceLost: The fallback candidate was taken before purchase.
            AmbiguousOutcome: A purchase may or may not have gone through.
        """
        if constraint.exact:
            return await self._purchase_exact(constraint.reference)
        return await self._purchase_near(constraint.reference)

    async def _purchase_exact(self, phone_number: str) -> str:
        if not phone_number or not phone_number.strip():
            log_error("No number provided")
            raise MissingInput("No number provided")

        log_info(f"Purchasing exact number {phone_number}")
        try:
            await self._buy(phone_number, phone_number=phone_number)
        except ProviderRejected as e:
            log_error(f"Purchase of {phone_number} rejected", e.reason)
            raise PurchaseRejected(e.reason, e.code) from e
        log_success("Purchased Twilio Number", phone_number)
        await self._record_purchase(phone_number, phone_number, "exact")
        return phone_number

    async def _purchase_near(self, reference: str) -> str:
        target = await self.validate(reference)

        state = advance(State.START, Outcome.BEGIN_SKIPPING_AREA_CODE if self.skip_area_code else Outcome.BEGIN)
        purchased: Optional[str] = None
        candidate: Optional[str] = None
        failure: Optional[NumberAcquisitionError] = None

        while state not in TERMINAL_STATES:
            if state is State.AREA_CODE_PURCHASE_ATTEMPTED:
                log_info(f"Purchasing a number in area code {target.area_code}")
                try:
                    purchased = await self._buy(f"area code {target.area_code}", area_code=target.area_code)
                    outcome = Outcome.PURCHASED
                except ProviderRejected as e:
                    if e.kind is RejectionKind.AREA_CODE_EXHAUSTED:
                        log_info(f"Area code {target.area_code} exhausted, searching region {target.region}")
                        outcome = Outcome.AREA_CODE_EXHAUSTED
                    else:
                        log_error(f"Purchase in area code {target.area_code} rejected", e.reason)
                        failure = _chain(PurchaseRejected(e.reason, e.code), e)
                        outcome = Outcome.REJECTED

            elif state is State.REGION_SEARCH_ATTEMPTED:
                try:
                    candidate = await search(target, self.inventory, start=SearchScope.REGION, timeout=self.timeout)
                    outcome = Outcome.CANDIDATE_FOUND
                except SearchError as e:
                    failure = _chain(PurchaseRejected(str(e)), e)
                    outcome = Outcome.SEARCH_FAILED

            elif state is State.REGION_PURCHASE_ATTEMPTED:
                log_info(f"Purchasing candidate {candidate}")
                try:
                    purchased = await self._buy(candidate, phone_number=candidate)
                    outcome = Outcome.PURCHASED
                except ProviderRejected as e:
                    if e.kind is RejectionKind.NUMBER_UNAVAILABLE:
                        log_error(f"Candidate {candidate} was taken before purchase", e.reason)
                        failure = _chain(PurchaseRaceLost(candidate, e.reason), e)
                    else:
                        log_error(f"Purchase of {candidate} rejected", e.reason)
                        failure = _chain(PurchaseRejected(e.reason, e.code), e)
                    outcome = Outcome.REJECTED

            state = advance(state, outcome)

        if state is State.FAILED:
            raise failure

        log_success("Purchased Twilio Number", f"{purchased} near {reference}")
        await self._record_purchase(purchased, reference, "near")
        return purchased

    async def _buy(self, selector: str, **kwargs) -> str:
        """One purchase call. Transport failures and timeouts are never retried."""
        try:
            return await asyncio.wait_for(self.purchaser.buy(**kwargs), self.timeout)
        except (asyncio.TimeoutError, ProviderUnavailable) as e:
            reason = str(e) or "timed out waiting for Twilio"
            log_error(f"Purchase outcome unknown for {selector}", reason)
            await self._record_ambiguous(selector, reason)
            raise AmbiguousOutcome(selector, reason) from e

    async def _record_purchase(self, phone_number: str, reference: str, mode: str):
        if self.audit is None:
            return
        try:
            await asyncio.to_thread(self.audit.record_purchase, phone_number, reference, mode)
        except Exception as e:
            log_error(f"Failed to record purchase of {phone_number}", str(e))

    async def _record_ambiguous(self, selector: str, reason: str):
        if self.audit is None:
            return
        try:
            await asyncio.to_thread(self.audit.record_ambiguous, selector, reason)
        except Exception as e:
            log_error(f"Failed to record ambiguous purchase for {selector}", str(e))


def _chain(error: NumberAcquisitionError, cause: BaseException) -> NumberAcquisitionError:
    error.__cause__ = cause
    return error


