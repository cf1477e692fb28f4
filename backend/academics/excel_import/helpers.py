# Shared Excel/CSV parsing and cleaning helpers for the student import

from datetime import datetime, date, timedelta
import re
from typing import Any, Optional

import numpy as np
import pandas as pd

_NA_STRINGS = ("nat", "nan", "null", "none", "<na>")

DATE_FORMATS = (
    "%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d",
    "%m/%d/%Y", "%d.%m.%Y", "%d-%b-%Y", "%d-%b-%y", "%d %b %Y", "%d %B %Y",
)


def clean_cell(val: Any) -> Optional[str]:
    """Normalize a cell value from pandas/Excel into a trimmed string or None.
    - Converts pandas NaN/NaT and common sentinel strings to None
    - Strips strings and returns None for empty strings
    - Drops the trailing '.0' Excel adds to whole numbers
    """
    if val is None:
        return None
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(val, np.generic):
        val = val.item()
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    s = str(val).strip()
    if s == "" or s.lower() in _NA_STRINGS:
        return None
    return s


def normalize_number_text(val: Any) -> Optional[str]:
    """Return a canonical string for identifier-like numbers: strip trailing .0
    from floats and numeric strings ('2656.0' -> '2656')."""
    s = clean_cell(val)
    if s is None:
        return None
    if s.endswith('.0') and s[:-2].isdigit():
        return s[:-2]
    if re.fullmatch(r"\d+(\.\d+)?[eE]\+?\d+", s):
        # Excel scientific notation for long ids, e.g. 9.87654321E+9
        try:
            f = float(s)
            if f.is_integer():
                return str(int(f))
        except ValueError:
            pass
    return s


def parse_excel_date(val: Any) -> Optional[date]:
    """Parse diverse Excel/CSV cell date values into a python date.
    Handles:
      - pandas.Timestamp / datetime / date objects
      - pandas.NaT or other NA markers => None
      - Excel serial numbers (>25000 heuristic)
      - Common string formats (Y-m-d, d-m-Y, d/m/Y, d-Mon-Y, ...)
    Raises ValueError for a non-empty value it cannot read.
    """
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.replace(tzinfo=None).date()
    if isinstance(val, date):
        return val
    if isinstance(val, pd.Timestamp):
        if pd.isna(val):
            return None
        return val.to_pydatetime().replace(tzinfo=None).date()
    sval = clean_cell(val)
    if sval is None:
        return None
    serial = sval.replace('.', '', 1)
    if serial.isdigit():
        num = float(sval)
        if num > 25000:
            origin = datetime(1899, 12, 30)
            return (origin + timedelta(days=int(num))).date()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(sval, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date value: {sval}")


def normalize_header(name: Any) -> str:
    """Case/whitespace/punctuation-insensitive key for a header cell."""
    if name is None:
        return ""
    return "".join(ch for ch in str(name).lower() if ch.isalnum())


def normalize_name(value: Any) -> str:
    """Lookup key for college/course/branch/batch names."""
    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()
