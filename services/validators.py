# services/validators.py
import re
from typing import Iterable, List

_ZIP = re.compile(r"^\d{5}(-\d{4})?$")


def missing_fields(record: dict, required: Iterable[str]) -> List[str]:
    return [k for k in required if (record or {}).get(k) in (None, "") or str(record.get(k)).strip() == ""]


def has_required_fields(record: dict, required: Iterable[str]) -> bool:
    return not missing_fields(record, required)


def is_valid_phone(number: str) -> bool:
    digits = re.sub(r"\D", "", number or "")
    return len(digits) >= 10


def is_valid_price(value) -> bool:
    try:
        return float(value) >= 0
    except (TypeError, ValueError):
        return False


def is_valid_zip(value: str) -> bool:
    return bool(_ZIP.match((value or "").strip()))
