"""
Storage Backend Module

Provides the abstract storage interface and the in-memory implementation the
ledger runs on. Records are JSON-compatible dicts. Transactions keep an
undo log of the records they overwrite or remove, so rollback restores the
state of the matching begin_transaction() and a failed batch leaves no trace.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Tuple
from datetime import datetime
import json
import threading
from dataclasses import dataclass
from contextlib import contextmanager


_MISSING = object()


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert base fields to a storage dictionary"""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table, in insertion order"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    def begin_transaction(self) -> None:
        """Start a transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except BaseException:
            self.rollback()
            raise


class InMemoryStorage(StorageInterface):
    """In-memory storage with nestable undo-log transactions"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        # One undo log per open transaction, innermost last
        self._undo: List[List[Tuple[str, str, Any]]] = []
        self._lock = threading.RLock()

    def _ensure_table(self, table: str) -> None:
        if table not in self._data:
            self._data[table] = {}

    @staticmethod
    def _copy(data: Any) -> Any:
        # Deep copy through JSON so stored records never alias caller objects
        return json.loads(json.dumps(data, default=str))

    def _remember(self, table: str, record_id: str) -> None:
        if self._undo:
            previous = self._data[table].get(record_id, _MISSING)
            self._undo[-1].append((table, record_id, previous))

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            self._remember(table, record_id)
            self._data[table][record_id] = self._copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record is not None:
                return self._copy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [self._copy(record) for record in self._data[table].values()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from memory"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                self._remember(table, record_id)
                del self._data[table][record_id]
                return True
            return False

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal every filter value"""
        with self._lock:
            self._ensure_table(table)
            results = []
            for record in self._data[table].values():
                if all(key in record and record[key] == value for key, value in filters.items()):
                    results.append(self._copy(record))
            return results

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    @property
    def in_transaction(self) -> bool:
        """Check if at least one transaction is open"""
        return bool(self._undo)

    def begin_transaction(self) -> None:
        """Open a (possibly nested) transaction with an empty undo log"""
        self._lock.acquire()
        self._undo.append([])

    def commit(self) -> None:
        """Keep changes made since the matching begin_transaction()"""
        if not self._undo:
            raise RuntimeError("commit() called without an open transaction")
        log = self._undo.pop()
        if self._undo:
            # The enclosing transaction can still undo what this one did
            self._undo[-1].extend(log)
        self._lock.release()

    def rollback(self) -> None:
        """Undo every write made since the matching begin_transaction()"""
        if not self._undo:
            raise RuntimeError("rollback() called without an open transaction")
        log = self._undo.pop()
        for table, record_id, previous in reversed(log):
            if previous is _MISSING:
                self._data[table].pop(record_id, None)
            else:
                self._data[table][record_id] = previous
        self._lock.release()
