import os
import sys

from fastapi.testclient import TestClient

# Add the project root to sys.path to allow imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fakes import AREA_CODES, GB_NUMBER, MA_NUMBER, FakeInventory, FakeOwned, FakePurchaser
from config import Settings
from main import create_app
from services.acquisition import NumberAcquirer
from services.errors import ProviderRejected, ProviderUnavailable, RejectionKind
from services.search import SearchScope


def make_client(inventory=None, purchaser=None, owned=None):
    acquirer = NumberAcquirer(
        inventory=inventory or FakeInventory(),
        purchaser=purchaser or FakePurchaser(),
        area_codes=AREA_CODES,
        owned=owned or FakeOwned(),
    )
    return TestClient(create_app(settings=Settings(_env_file=None), acquirer=acquirer))


def test_root():
    response = make_client().get("/")
    assert response.status_code == 200


def test_validate_endpoint():
    response = make_client().get("/numbers/validate", params={"near_phone_number": MA_NUMBER})

    assert response.status_code == 200
    assert response.json() == {"number": MA_NUMBER, "code": "US", "area_code": "617", "state": "MA"}


def test_validate_rejects_foreign_number():
    response = make_client().get("/numbers/validate", params={"near_phone_number": GB_NUMBER})
    assert response.status_code == 422


def test_available_endpoint():
    client = make_client(inventory=FakeInventory({SearchScope.REGION: ["+15085550001"]}))

    response = client.get("/numbers/available", params={"near_phone_number": MA_NUMBER})

    assert response.status_code == 200
    assert response.json()["available_number"] == "+15085550001"


def test_available_endpoint_nothing_found():
    response = make_client().get("/numbers/available", params={"near_phone_number": MA_NUMBER})
    assert response.status_code == 404


def test_purchase_near_from_json_alias():
    purchaser = FakePurchaser("+16175550123")

    response = make_client(purchaser=purchaser).post("/numbers/purchase", json={"nearPhoneNumber": MA_NUMBER})

    assert response.status_code == 200
    assert response.json() == {"status": "success", "purchased_number": "+16175550123"}
    assert purchaser.calls == [{"phone_number": None, "area_code": "617"}]


def test_purchase_exact_from_form():
    purchaser = FakePurchaser("+15005550006")

    response = make_client(purchaser=purchaser).post("/numbers/purchase", data={"exact_phone_number": "+15005550006"})

    assert response.status_code == 200
    assert purchaser.calls == [{"phone_number": "+15005550006", "area_code": None}]


def test_purchase_requires_a_number():
    response = make_client().post("/numbers/purchase", json={"id": "rec123"})
    assert response.status_code == 422


def test_purchase_rejected_is_conflict():
    purchaser = FakePurchaser(ProviderRejected(RejectionKind.OTHER, "Not allowed", 21404))

    response = make_client(purchaser=purchaser).post("/numbers/purchase", json={"exact_phone_number": "+15005550006"})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == 21404


def test_purchase_race_lost_is_conflict():
    inventory = FakeInventory({SearchScope.REGION: ["+15085550001"]})
    purchaser = FakePurchaser(
        ProviderRejected(RejectionKind.AREA_CODE_EXHAUSTED, "No phone numbers found in area code", 21452),
        ProviderRejected(RejectionKind.NUMBER_UNAVAILABLE, "PhoneNumber requested is not available", 21422),
    )

    response = make_client(inventory, purchaser).post("/numbers/purchase", json={"near_phone_number": MA_NUMBER})

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "race_lost"


def test_ambiguous_purchase_is_flagged():
    purchaser = FakePurchaser(ProviderUnavailable("read timeout"))

    response = make_client(purchaser=purchaser).post("/numbers/purchase", json={"near_phone_number": MA_NUMBER})

    assert response.status_code == 504
    assert response.json()["detail"]["possibly_purchased"] is True


def test_owned_endpoint():
    client = make_client(owned=FakeOwned(["+16175550123"]))

    response = client.get("/numbers/owned", params={"area_code": "617"})

    assert response.status_code == 200
    assert response.json() == {"owned": True, "numbers": ["+16175550123"]}
