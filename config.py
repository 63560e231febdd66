import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Fallback credentials, used when a query/buy pair is not configured
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None

    # Read-scoped and write-scoped credentials
    TWILIO_QUERY_SID: Optional[str] = None
    TWILIO_QUERY_TOKEN: Optional[str] = None
    TWILIO_BUY_SID: Optional[str] = None
    TWILIO_BUY_TOKEN: Optional[str] = None

    # Test credentials can buy magic numbers but cannot query inventory
    USE_TEST_CREDENTIALS: bool = False
    TWILIO_TEST_ACCOUNT_SID: Optional[str] = None
    TWILIO_TEST_AUTH_TOKEN: Optional[str] = None

    # Optional JSON file: {"creds": {"query": {...}, "buy": {...}}}
    TWILIO_CONFIG_FILE: Optional[str] = None

    SUPPORTED_COUNTRY: str = "US"
    AREA_CODES_FILE: Optional[str] = None
    SKIP_AREA_CODE: bool = False
    PROVIDER_TIMEOUT_SECONDS: float = 15.0

    # Audit trail (disabled unless both are set)
    AIRTABLE_BASE_ID: Optional[str] = None
    AIRTABLE_API_KEY: Optional[str] = None
    AIRTABLE_PURCHASES_TABLE: str = "Purchased Numbers"
    AIRTABLE_AUDIT_LOG_TABLE: str = "Audit Log"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"


@dataclass(frozen=True)
class CredentialPair:
    sid: Optional[str] = None
    token: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.sid and self.token)


@dataclass(frozen=True)
class Credentials:
    """Twilio distinguishes read-scoped (query) and write-scoped (buy) credentials."""
    query: CredentialPair
    buy: CredentialPair


def _pair(raw: Optional[Mapping[str, Any]]) -> CredentialPair:
    raw = raw or {}
    return CredentialPair(sid=raw.get("sid"), token=raw.get("token"))


def load_credentials(
    source: Union[Mapping[str, Any], str, Path, None] = None,
    settings: Optional[Settings] = None,
) -> Credentials:
    """
    Resolves query/buy credential pairs once, before first use.

    Args:
        source: Either a config mapping or a path to a JSON file shaped like
                {"creds": {"query": {"sid": ..., "token": ...},
                           "buy": {"sid": ..., "token": ...}}}.
                When omitted, TWILIO_CONFIG_FILE or the TWILIO_QUERY_* /
                TWILIO_BUY_* settings are used.
        settings: Settings supplying the fallback account credentials.

    Returns:
        Credentials: Pairs for query and buy clients. Missing pairs fall back to
                     TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN.

    Raises:
        FileNotFoundError: If a config path was given but does not exist.
    """
    settings = settings or Settings()

    if source is None and settings.TWILIO_CONFIG_FILE:
        source = settings.TWILIO_CONFIG_FILE

    if isinstance(source, (str, Path)):
        path = Path(source).expanduser().resolve()
        if not path.exists():
            raise FileNotFoundError(f"config file not found at path: {path}")
        source = json.loads(path.read_text())

    if source is not None:
        creds = (source or {}).get("creds") or {}
        query = _pair(creds.get("query"))
        buy = _pair(creds.get("buy"))
    else:
        query = CredentialPair(settings.TWILIO_QUERY_SID, settings.TWILIO_QUERY_TOKEN)
        buy = CredentialPair(settings.TWILIO_BUY_SID, settings.TWILIO_BUY_TOKEN)

    fallback = CredentialPair(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
    if not query.complete:
        query = fallback
    if not buy.complete:
        buy = fallback

    if settings.USE_TEST_CREDENTIALS:
        buy = CredentialPair(settings.TWILIO_TEST_ACCOUNT_SID, settings.TWILIO_TEST_AUTH_TOKEN)

    return Credentials(query=query, buy=buy)
