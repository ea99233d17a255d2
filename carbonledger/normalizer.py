"""Normalization of raw ledger payloads into Records.

Ledger clients hand back loosely typed values: big integers, numeric
strings, missing fields, attribute objects instead of dicts. Everything
is funnelled through ``LedgerBusinessData`` so the rest of the package only
ever sees ``Record``.

Defaulting rules:
- name missing/None -> ""
- creator missing/None -> ""
- timestamp missing/None -> 0; non-integer values make the record malformed
- publicValue1 / publicValue2 missing or non-numeric -> 0
- isVerified missing/None -> False
- decryptedValue: ignored unless isVerified; a verified record with a
  missing or non-numeric value keeps None, so stats skip it
- category: parsed from "Carbon footprint: <category>" in the description,
  or a "category" field; None when neither names a known category
"""

import logging
import re
import time
from collections.abc import Mapping
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from carbonledger.levels import classify
from carbonledger.protocols import RecordNormalizationError
from carbonledger.types import VALID_CATEGORY_VALUES, CarbonLevel, Category, Record

logger = logging.getLogger(__name__)

DESCRIPTION_PREFIX = "Carbon footprint: "

_PAYLOAD_FIELDS = (
    "name",
    "timestamp",
    "creator",
    "publicValue1",
    "publicValue2",
    "isVerified",
    "decryptedValue",
    "description",
    "category",
)

_LEADING_INT = re.compile(r"^\s*[+-]?[0-9]+")


def _lenient_int(value: Any) -> Optional[int]:
    """Best-effort integer coercion; None when the value is not numeric."""
    if value is None:
        return None
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return int(value) if value == value and abs(value) != float("inf") else None
    text = str(value).strip()
    try:
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    except ValueError:
        return None


class LedgerBusinessData(BaseModel):
    """Typed view of one ``getBusinessData`` payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    timestamp: int = 0
    creator: str = ""
    public_value1: int = Field(0, alias="publicValue1")
    public_value2: int = Field(0, alias="publicValue2")
    is_verified: bool = Field(False, alias="isVerified")
    decrypted_value: Optional[int] = Field(None, alias="decryptedValue")
    description: Optional[str] = None
    category: Optional[str] = None

    @field_validator("name", "creator", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> Any:
        return "" if v is None else str(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _strict_timestamp(cls, v: Any) -> Any:
        if v is None:
            return 0
        coerced = _lenient_int(v)
        if coerced is None:
            raise ValueError(f"timestamp is not an integer: {v!r}")
        return coerced

    @field_validator("public_value1", "public_value2", mode="before")
    @classmethod
    def _public_value(cls, v: Any) -> int:
        coerced = _lenient_int(v)
        return coerced if coerced is not None else 0

    @field_validator("is_verified", mode="before")
    @classmethod
    def _verified_flag(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("decrypted_value", mode="before")
    @classmethod
    def _decrypted(cls, v: Any) -> Optional[int]:
        return _lenient_int(v)

    @field_validator("description", "category", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)


def _payload_to_mapping(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, Mapping):
        return dict(payload)
    return {f: getattr(payload, f) for f in _PAYLOAD_FIELDS if hasattr(payload, f)}


def parse_business_data(business_key: str, payload: Any) -> LedgerBusinessData:
    """Validate a raw payload. Raises RecordNormalizationError when malformed."""
    if payload is None:
        raise RecordNormalizationError(business_key, "empty payload")
    try:
        return LedgerBusinessData.model_validate(_payload_to_mapping(payload))
    except ValidationError as exc:
        raise RecordNormalizationError(business_key, str(exc)) from exc


def parse_leading_int(text: Any) -> Optional[int]:
    """Signed integer prefix of ``text`` ("7 kg" -> 7); None when there is none."""
    match = _LEADING_INT.match(str(text))
    return int(match.group(0)) if match else None


def derive_record_id(business_key: str, prefix: str = "carbon-") -> int:
    """UI id from the business key's numeric suffix, else a millisecond timestamp."""
    suffix = business_key[len(prefix):] if business_key.startswith(prefix) else business_key
    value = parse_leading_int(suffix)
    if value:
        return value
    logger.debug("Business key %s has no numeric id; using a timestamp", business_key)
    return int(time.time() * 1000)


def parse_category(data: LedgerBusinessData) -> Optional[Category]:
    """Recover the category written into the record description."""
    candidates = []
    if data.description and data.description.startswith(DESCRIPTION_PREFIX):
        candidates.append(data.description[len(DESCRIPTION_PREFIX):])
    if data.category:
        candidates.append(data.category)
    for candidate in candidates:
        value = candidate.strip().lower()
        if value in VALID_CATEGORY_VALUES:
            return Category(value)
    return None


def describe_category(category: Category) -> str:
    """Description text stored on-chain alongside a new record."""
    return f"{DESCRIPTION_PREFIX}{Category(category).value}"


def normalize_record(
    business_key: str,
    payload: Any,
    local_value: Optional[int] = None,
    key_prefix: str = "carbon-",
) -> Record:
    """Turn a raw ledger payload into a Record.

    Args:
        business_key: The ledger's key for this record.
        payload: Raw ``getBusinessData`` result.
        local_value: Cleartext from a decryption completed this session, used
            only while the ledger has not marked the record verified.
        key_prefix: Prefix stripped before deriving the UI id.

    Raises:
        RecordNormalizationError: If the payload is malformed.
    """
    data = parse_business_data(business_key, payload)

    if data.is_verified:
        decrypted = data.decrypted_value
    else:
        decrypted = local_value

    level = classify(decrypted) if decrypted is not None else CarbonLevel.UNKNOWN

    return Record(
        id=derive_record_id(business_key, key_prefix),
        business_key=business_key,
        name=data.name,
        category=parse_category(data),
        created_at=data.timestamp,
        creator=data.creator,
        public_value1=data.public_value1,
        public_value2=data.public_value2,
        is_verified=data.is_verified,
        decrypted_value=decrypted,
        level=level,
    )
