import asyncio
import os
import sys

import pytest

# Add the project root to sys.path to allow imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fakes import AREA_CODES, MA_NUMBER, FakeInventory
from services.errors import NoAvailableNumber, ProviderError, ProviderRejected, ProviderUnavailable, RejectionKind
from services.search import ScopeFilter, SearchScope, scope_plan, search
from services.validator import validate

TARGET = validate(MA_NUMBER, AREA_CODES)


def test_scope_plan_widens_in_fixed_order():
    assert scope_plan(TARGET) == [
        ScopeFilter(SearchScope.AREA_CODE, "617"),
        ScopeFilter(SearchScope.REGION, "MA"),
    ]
    assert scope_plan(TARGET, SearchScope.EXACT)[0] == ScopeFilter(SearchScope.EXACT, MA_NUMBER)
    assert scope_plan(TARGET, SearchScope.REGION) == [ScopeFilter(SearchScope.REGION, "MA")]


def test_area_code_hit_never_queries_region():
    inventory = FakeInventory({
        SearchScope.AREA_CODE: ["+16175550001", "+16175550002"],
        SearchScope.REGION: ["+15085550001"],
    })

    number = asyncio.run(search(TARGET, inventory))

    assert number == "+16175550001"
    assert [c.scope for c in inventory.calls] == [SearchScope.AREA_CODE]


def test_empty_area_code_falls_back_to_region():
    inventory = FakeInventory({SearchScope.REGION: ["+15085550001", "+17815550001"]})

    number = asyncio.run(search(TARGET, inventory))

    assert number == "+15085550001"
    assert inventory.calls == [
        ScopeFilter(SearchScope.AREA_CODE, "617"),
        ScopeFilter(SearchScope.REGION, "MA"),
    ]


def test_no_availability_after_two_queries():
    inventory = FakeInventory()

    with pytest.raises(NoAvailableNumber):
        asyncio.run(search(TARGET, inventory))

    assert len(inventory.calls) == 2


def test_provider_failure_aborts_cascade():
    inventory = FakeInventory({
        SearchScope.AREA_CODE: ProviderUnavailable("connection reset"),
        SearchScope.REGION: ["+15085550001"],
    })

    with pytest.raises(ProviderError):
        asyncio.run(search(TARGET, inventory))

    assert len(inventory.calls) == 1


def test_provider_rejection_is_a_provider_error():
    inventory = FakeInventory({
        SearchScope.AREA_CODE: ProviderRejected(RejectionKind.OTHER, "Authenticate", 20003),
    })

    with pytest.raises(ProviderError):
        asyncio.run(search(TARGET, inventory))


def test_region_start_skips_area_code():
    inventory = FakeInventory({
        SearchScope.AREA_CODE: ["+16175550001"],
        SearchScope.REGION: ["+15085550001"],
    })

    number = asyncio.run(search(TARGET, inventory, start=SearchScope.REGION))

    assert number == "+15085550001"
    assert [c.scope for c in inventory.calls] == [SearchScope.REGION]


def test_exact_start_returns_reference_when_available():
    inventory = FakeInventory({SearchScope.EXACT: [MA_NUMBER]})

    assert asyncio.run(search(TARGET, inventory, start=SearchScope.EXACT)) == MA_NUMBER
    assert len(inventory.calls) == 1


def test_query_timeout_is_a_provider_error():
    inventory = FakeInventory({SearchScope.AREA_CODE: ["+16175550001"]}, delay=1)

    with pytest.raises(ProviderError):
        asyncio.run(search(TARGET, inventory, timeout=0.01))
