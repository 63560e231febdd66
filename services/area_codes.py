"""
Area Code Table
===============
Static mapping of US area codes to the state that owns them.

The table is loaded once at startup and treated as read-only afterwards.
The state abbreviation doubles as Twilio's `in_region` filter value.
"""

import csv
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

DEFAULT_AREA_CODES_FILE = Path(__file__).parent / "data" / "area_codes.csv"


class AreaCodeTable:
    def __init__(self, mapping: Mapping[str, str]):
        self._states: Dict[str, str] = dict(mapping)

    @classmethod
    def from_csv(cls, path: Union[str, Path, None] = None) -> "AreaCodeTable":
        """
        Loads an `area_code,state` CSV file.

        Args:
            path: CSV location. Defaults to the bundled table.
        """
        path = Path(path) if path else DEFAULT_AREA_CODES_FILE
        with path.open(newline="") as f:
            reader = csv.DictReader(f)
            mapping = {row["area_code"].strip(): row["state"].strip() for row in reader if row.get("area_code")}
        return cls(mapping)

    def state_for(self, area_code: str) -> Optional[str]:
        return self._states.get(area_code)

    def __contains__(self, area_code: str) -> bool:
        return area_code in self._states

    def __len__(self) -> int:
        return len(self._states)
