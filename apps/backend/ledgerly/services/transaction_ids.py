"""Correlation ids and transfer markers carried on transactions."""

from __future__ import annotations

import re
import secrets
import uuid
from typing import Iterable, Optional

TRANSACTION_ID_PATTERN = re.compile(r"^F\d{7}$")

TRANSFER_TAG = "transfer"
DPS_TRANSFER_PREFIX = "dps_transfer_"
TRANSFER_CATEGORY = "Transfer"
DPS_CATEGORY = "DPS"
SAVINGS_TAG = "savings"


def generate_transaction_id() -> str:
    """Return a short human-readable id: ``F`` followed by seven digits."""
    return f"F{secrets.randbelow(10_000_000):07d}"


def is_valid_transaction_id(value: Optional[str]) -> bool:
    return bool(value) and TRANSACTION_ID_PATTERN.match(value) is not None


def generate_transfer_id() -> str:
    return str(uuid.uuid4())


def transfer_tags(transfer_id: str, counter_account_id: int, counter_value: object) -> list[str]:
    """Tags for one leg of a transfer: marker, shared id, the other leg's account and amount."""
    return [TRANSFER_TAG, transfer_id, str(counter_account_id), str(counter_value)]


def dps_transfer_tags(transfer_id: str) -> list[str]:
    return [f"{DPS_TRANSFER_PREFIX}{transfer_id}"]


def is_transfer(tags: Optional[Iterable[str]]) -> bool:
    """True when any tag carries a transfer or DPS transfer marker."""
    return any(TRANSFER_TAG in tag for tag in tags or ())


def transfer_id_of(tags: Optional[Iterable[str]]) -> Optional[str]:
    tags = list(tags or ())
    if len(tags) >= 2 and tags[0] == TRANSFER_TAG:
        return tags[1]
    for tag in tags:
        if tag.startswith(DPS_TRANSFER_PREFIX):
            return tag[len(DPS_TRANSFER_PREFIX):]
    return None
