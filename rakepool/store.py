"""
rakepool/store.py - Deterministic record addressing and the record map.

Addresses are derived from seeds, so the same tournament_id always lands on
the same address and a second create at that address is refused.
"""

import copy
import hashlib
from typing import Any

ADMIN_CONFIG_SEED = b"admin_config"
TOURNAMENT_SEED = b"tournament"


def derive_address(*seeds: bytes) -> str:
    """Hash length-prefixed seed parts into a 0x-prefixed 20-byte hex address."""
    h = hashlib.sha256()
    for seed in seeds:
        h.update(len(seed).to_bytes(4, "little"))
        h.update(seed)
    return "0x" + h.digest()[:20].hex()


def admin_config_address() -> str:
    return derive_address(ADMIN_CONFIG_SEED)


def tournament_address(tournament_id: str) -> str:
    return derive_address(TOURNAMENT_SEED, tournament_id.encode("utf-8"))


class RecordExistsError(KeyError):
    """Raised when creating a record at an address that is already taken."""


class RecordStore:
    """Address -> record map. Insertion order is creation order."""

    def __init__(self) -> None:
        self._records: dict[str, Any] = {}

    def create(self, address: str, record: Any) -> None:
        if address in self._records:
            raise RecordExistsError(address)
        self._records[address] = record

    def get(self, address: str) -> Any | None:
        return self._records.get(address)

    def exists(self, address: str) -> bool:
        return address in self._records

    def values(self) -> list[Any]:
        return list(self._records.values())

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._records)

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._records = snapshot
