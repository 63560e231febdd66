import asyncio
import os
import sys
import time
from unittest.mock import MagicMock, patch

# Add the project root to sys.path to allow imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from config import Settings
from services.airtable_client import AuditTrail
from utils import logger as app_logger
from utils.request_parser import first_present


def test_audit_trail_disabled_without_airtable_settings():
    assert AuditTrail.from_settings(Settings(_env_file=None)) is None


@patch('services.airtable_client.Api')
def test_record_purchase_writes_purchase_and_event(mock_api):
    tables = {}
    mock_api.return_value.base.return_value.table.side_effect = lambda name: tables.setdefault(name, MagicMock())
    settings = Settings(_env_file=None, AIRTABLE_API_KEY="key", AIRTABLE_BASE_ID="app123")

    audit = AuditTrail.from_settings(settings)
    audit.record_purchase("+16175550123", "+16175425942", "near")

    mock_api.assert_called_once_with("key")
    purchase = tables["Purchased Numbers"].create.call_args[0][0]
    assert purchase["Phone Number"] == "+16175550123"
    assert purchase["Status"] == "Purchased"
    event = tables["Audit Log"].create.call_args[0][0]
    assert event["Event"] == "NUMBER_PURCHASED"


@patch('services.airtable_client.Api')
def test_record_ambiguous_needs_reconciliation(mock_api):
    tables = {}
    mock_api.return_value.base.return_value.table.side_effect = lambda name: tables.setdefault(name, MagicMock())

    AuditTrail("key", "app123", "Purchased Numbers", "Audit Log").record_ambiguous("area code 617", "read timeout")

    assert tables["Purchased Numbers"].create.call_args[0][0]["Status"] == "Needs Reconciliation"


def test_log_errors_are_mirrored_to_audit_sink():
    sink = MagicMock()
    app_logger.set_audit_sink(sink)
    try:
        app_logger.log_error("Purchase rejected", "21404")
        app_logger.log_info("not mirrored")
    finally:
        app_logger.set_audit_sink(None)

    sink.assert_called_once_with("ERROR", "Purchase rejected", "21404")


def test_failing_audit_sink_does_not_raise():
    app_logger.set_audit_sink(MagicMock(side_effect=RuntimeError("Airtable down")))
    try:
        app_logger.log_success("Purchased Twilio Number")
    finally:
        app_logger.set_audit_sink(None)


def test_first_present_matches_aliases_loosely():
    payload = {"Near Phone Number": " +16175425942 ", "other": "x"}
    assert first_present(payload, ["near_phone_number"]) == "+16175425942"
    assert first_present({"exactPhoneNumber": ""}, ["exactPhoneNumber"]) is None


def test_audit_sink_runs_off_the_event_loop():
    sink = MagicMock(side_effect=lambda *args: time.sleep(0.3))

    async def log_three():
        started = time.monotonic()
        for i in range(3):
            app_logger.log_error("Purchase rejected", str(i))
        return time.monotonic() - started

    app_logger.set_audit_sink(sink)
    try:
        elapsed = asyncio.run(log_three())
    finally:
        app_logger.set_audit_sink(None)

    assert elapsed < 0.3
    # asyncio.run waits for the executor on shutdown
    assert sink.call_count == 3
