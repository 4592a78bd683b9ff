"""
Name Index - Maps account names to account IDs for one wallet.

The index is persisted separately from the wallet record and can always be
rebuilt from the wallet's stored accounts.
"""

import json
import threading
import uuid
from typing import Optional

from .errors import CorruptStateError


class NameIndex:
    """Bidirectional name <-> ID mapping (names and IDs both unique)."""

    def __init__(self):
        self._ids: dict[str, uuid.UUID] = {}    # name -> id
        self._names: dict[uuid.UUID, str] = {}  # id -> name
        self._lock = threading.Lock()

    def add(self, account_id: uuid.UUID, name: str) -> None:
        """Add an entry, replacing any entry that shares its ID or name."""
        with self._lock:
            old_name = self._names.pop(account_id, None)
            if old_name is not None:
                del self._ids[old_name]
            old_id = self._ids.pop(name, None)
            if old_id is not None:
                del self._names[old_id]
            self._ids[name] = account_id
            self._names[account_id] = name

    def remove(self, account_id: uuid.UUID) -> None:
        """Remove the entry for an ID (no-op if absent)."""
        with self._lock:
            name = self._names.pop(account_id, None)
            if name is not None:
                del self._ids[name]

    def id(self, name: str) -> Optional[uuid.UUID]:
        """Get the ID for a name."""
        return self._ids.get(name)

    def name(self, account_id: uuid.UUID) -> Optional[str]:
        """Get the name for an ID."""
        return self._names.get(account_id)

    def items(self) -> list[tuple[str, uuid.UUID]]:
        """All (name, id) pairs, sorted by name."""
        with self._lock:
            return sorted(self._ids.items())

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, name: str) -> bool:
        return name in self._ids

    def serialize(self) -> bytes:
        data = [{"uuid": str(account_id), "name": name} for name, account_id in self.items()]
        return json.dumps(data).encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes) -> "NameIndex":
        """Load an index, raising CorruptStateError on any malformed entry."""
        try:
            entries = json.loads(data)
            if not isinstance(entries, list):
                raise ValueError("index is not a list")
            index = cls()
            for entry in entries:
                index.add(uuid.UUID(entry["uuid"]), str(entry["name"]))
        except (TypeError, ValueError, KeyError, AttributeError, UnicodeDecodeError) as e:
            raise CorruptStateError("accounts index corrupt") from e
        return index
