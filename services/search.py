"""
Availability Search
===================
Finds an available number resembling the target by widening the search
scope one step at a time.

Key Functionality:
- Plans the scope cascade: EXACT (optional) -> AREA_CODE -> REGION.
- Issues one inventory query per scope, strictly in order.
- Returns the first candidate of the first non-empty result.
- Aborts on any provider failure instead of widening the scope.

Numbers returned here are only available at query time. A purchase made
afterwards can still lose the race to another buyer.
"""

import asyncio
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Protocol

from services.errors import NoAvailableNumber, ProviderError, ProviderRejected, ProviderUnavailable
from services.validator import NormalizedTarget
from utils.logger import log_error, log_info


class SearchScope(IntEnum):
    """Relaxation levels, narrowest first. Scope only ever widens."""
    EXACT = 0
    AREA_CODE = 1
    REGION = 2


@dataclass(frozen=True)
class ScopeFilter:
    scope: SearchScope
    value: str

    def __str__(self):
        return f"{self.scope.name.lower()} {self.value}"


class InventoryQuery(Protocol):
    async def query(self, country: str, scope: ScopeFilter) -> List[str]:
        """Lists available numbers in `country` matching the scope filter."""
        ...


def scope_plan(target: NormalizedTarget, start: SearchScope = SearchScope.AREA_CODE) -> List[ScopeFilter]:
    """Ordered scope filters to try for `target`, beginning at `start`."""
    values = {
        SearchScope.EXACT: target.e164_number,
        SearchScope.AREA_CODE: target.area_code,
        SearchScope.REGION: target.region,
    }
    return [ScopeFilter(scope, values[scope]) for scope in SearchScope if scope >= start]


async def search(
    target: NormalizedTarget,
    inventory: InventoryQuery,
    start: SearchScope = SearchScope.AREA_CODE,
    timeout: Optional[float] = None,
) -> str:
    """
    Runs the fallback cascade and returns the first available number.

    Args:
        target (NormalizedTarget): Validated reference number.
        inventory (InventoryQuery): Inventory query capability.
        start (SearchScope): First scope to try. REGION skips the area code query.
        timeout (float, optional): Seconds allowed for each query.

    Returns:
        str: The first candidate of the first non-empty scope.

    Raises:
        ProviderError: A query failed; no further scopes are tried.
        NoAvailableNumber: Every scope came back empty.
    """
    for scope in scope_plan(target, start):
        log_info(f"Trying {scope}")
        try:
            candidates = await asyncio.wait_for(inventory.query(target.country_code, scope), timeout)
        except asyncio.TimeoutError as e:
            err = f"Inventory query timed out for {scope}"
            log_error(err)
            raise ProviderError(err) from e
        except (ProviderRejected, ProviderUnavailable) as e:
            err = f"Error querying Twilio for {scope}: {e}"
            log_error(err)
            raise ProviderError(err) from e

        if candidates:
            log_info("Suitable number found", f"{candidates[0]} ({scope})")
            return candidates[0]

        log_info(f"No numbers available for {scope}")

    err = f"No suitable number available near {target.e164_number}"
    log_error(err)
    raise NoAvailableNumber(err)
