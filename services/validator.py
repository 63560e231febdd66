"""
Constraint Validator
====================
Turns a free-form reference number into a NormalizedTarget.

Key Functionality:
- Parses the number under international numbering rules (phonenumbers).
- Resolves the owning country and enforces the single supported country.
- Derives the area code and looks up the owning state in the area-code table.

Validation has no side effects beyond logging, so validating the same
number twice always yields the same target.
"""

import re
from dataclasses import dataclass
from typing import Optional

import phonenumbers

from services.area_codes import AreaCodeTable
from services.errors import AreaCodeTableError, MissingInput, UnparsableNumber, UnsupportedCountry
from utils.logger import log_error, log_info

# phonenumbers maps keypad letters to digits ("1-800-FLOWERS"); references must be digits
LETTERS = re.compile(r"[A-Za-z]")


@dataclass(frozen=True)
class NormalizedTarget:
    e164_number: str
    country_code: str
    area_code: str
    region: str


def area_code_of(number: phonenumbers.PhoneNumber) -> str:
    """Returns the national destination code (the 3-digit area code for NANP numbers)."""
    national = phonenumbers.national_significant_number(number)
    length = phonenumbers.length_of_national_destination_code(number) or 3
    return national[:length]


def validate(
    reference: Optional[str],
    area_codes: AreaCodeTable,
    supported_country: str = "US",
    default_region: Optional[str] = None,
) -> NormalizedTarget:
    """
    Validates and normalizes a reference phone number.

    Args:
        reference (str): Free-form phone number, e.g. "+1 (617) 542-5942".
        area_codes (AreaCodeTable): Area code -> state table.
        supported_country (str): ISO region code the system is scoped to.
        default_region (str, optional): Region used to parse numbers without a
                                        leading '+'. None means the number must
                                        be in international form.

    Returns:
        NormalizedTarget: E.164 number, country, area code and state.

    Raises:
        MissingInput: No reference number was provided.
        UnparsableNumber: The input is not a phone number, or contains letters.
        UnsupportedCountry: The number belongs to no country, or another country.
        AreaCodeTableError: A supported number whose area code is missing from the table.
    """
    if not reference or not reference.strip():
        log_error("No number provided")
        raise MissingInput("No number provided")

    if LETTERS.search(reference):
        err = f"Provided number was invalid: {reference}"
        log_error(err, "letters are not allowed")
        raise UnparsableNumber(err)

    try:
        parsed = phonenumbers.parse(reference, default_region)
    except phonenumbers.NumberParseException as e:
        err = f"Provided number was invalid: {reference}"
        log_error(err, str(e))
        raise UnparsableNumber(err) from e

    e164 = phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

    country = phonenumbers.region_code_for_number(parsed)
    if not country:
        err = f"No country code for number: {reference}"
        log_error(err)
        raise UnsupportedCountry(err)

    if country != supported_country:
        err = f"Configured to only handle {supported_country} numbers; number: {reference}, code: {country}"
        log_error(err)
        raise UnsupportedCountry(err)

    area_code = area_code_of(parsed)
    region = area_codes.state_for(area_code)
    if not region:
        err = f"Area code {area_code} of {e164} is missing from the area code table"
        log_error(err)
        raise AreaCodeTableError(err)

    log_info(f"Validated {reference}", f"{e164}, area code {area_code}, region {region}")
    return NormalizedTarget(
        e164_number=e164,
        country_code=country,
        area_code=area_code,
        region=region,
    )
