"""
Error Taxonomy
==============
Every failure the acquisition flow can produce. Callers receive either a
phone number string or one of these exceptions.

- ValidationError: the reference number is unusable. Terminal.
- SearchError: the inventory cascade failed. Terminal.
- PurchaseError: the purchase failed. AmbiguousOutcome means the number may
  have been bought and must be reconciled, never re-purchased blindly.

ProviderRejected and ProviderUnavailable only exist at the Twilio boundary;
the coordinator translates them into the taxonomy above.
"""

from enum import Enum
from typing import Optional


class NumberAcquisitionError(Exception):
    """Base class for every acquisition failure."""


# ---------------------------------------------------------
# Validation
# ---------------------------------------------------------

class ValidationError(NumberAcquisitionError):
    pass


class MissingInput(ValidationError):
    pass


class UnparsableNumber(ValidationError):
    pass


class UnsupportedCountry(ValidationError):
    pass


class AreaCodeTableError(NumberAcquisitionError):
    """A validated number has no entry in the area-code table."""


# ---------------------------------------------------------
# Search
# ---------------------------------------------------------

class SearchError(NumberAcquisitionError):
    pass


class ProviderError(SearchError):
    pass


class NoAvailableNumber(SearchError):
    pass


# ---------------------------------------------------------
# Purchase
# ---------------------------------------------------------

class PurchaseError(NumberAcquisitionError):
    pass


class PurchaseRejected(PurchaseError):
    def __init__(self, reason: str, code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.code = code


class PurchaseRaceLost(PurchaseError):
    def __init__(self, phone_number: str, reason: str = ""):
        super().__init__(f"{phone_number} was taken before it could be purchased" + (f": {reason}" if reason else ""))
        self.phone_number = phone_number
        self.reason = reason


class AmbiguousOutcome(PurchaseError):
    """The purchase request may have reached Twilio; treat the number as possibly purchased."""

    def __init__(self, selector: str, reason: str = ""):
        super().__init__(f"Purchase outcome unknown for {selector}" + (f": {reason}" if reason else ""))
        self.selector = selector
        self.reason = reason


# ---------------------------------------------------------
# Provider boundary
# ---------------------------------------------------------

class RejectionKind(Enum):
    AREA_CODE_EXHAUSTED = "area_code_exhausted"
    NUMBER_UNAVAILABLE = "number_unavailable"
    OTHER = "other"


class ProviderRejected(Exception):
    """A definite rejection returned by Twilio."""

    def __init__(self, kind: RejectionKind, reason: str, code: Optional[int] = None):
        super().__init__(reason)
        self.kind = kind
        self.reason = reason
        self.code = code


class ProviderUnavailable(Exception):
    """Transport failure or timeout; the remote effect is unknown."""
