"""
Audit Trail Module

Hash-chained audit log with SHA-256 for tamper detection. Every vault
mutation is logged here. Events live in the same store as the vaults, so the
events of a rolled-back batch disappear together with its effects.
"""

import hashlib
import json
import threading
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .storage import StorageInterface, StorageRecord


class AuditEventType(Enum):
    """Types of audit events"""
    VAULT_CREATED = "vault_created"
    VALUE_MINTED = "value_minted"
    VALUE_TRANSFERRED = "value_transferred"
    BATCH_EXECUTED = "batch_executed"


@dataclass
class AuditEvent(StorageRecord):
    """
    Immutable audit event with hash chaining for tamper detection
    """
    sequence: int
    event_type: AuditEventType
    entity_type: str  # vault, batch
    entity_id: str
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any]

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this event
        Hash includes all fields except current_hash
        """
        hash_data = {
            'id': self.id,
            'sequence': self.sequence,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'metadata': self.metadata
        }

        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'), default=str)
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            'sequence': self.sequence,
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'current_hash': self.current_hash,
            'metadata': self.metadata
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            sequence=data['sequence'],
            event_type=AuditEventType(data['event_type']),
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            previous_hash=data['previous_hash'],
            current_hash=data['current_hash'],
            metadata=data['metadata']
        )


class AuditTrail:
    """
    Hash-chained audit trail for tamper detection
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events"):
        self.storage = storage
        self.table_name = table_name
        self._lock = threading.Lock()
        self._head: Optional[Dict[str, Any]] = None

    def _load_events(self) -> List[AuditEvent]:
        events = [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]
        events.sort(key=lambda e: e.sequence)
        return events

    def _chain_head(self) -> Dict[str, Any]:
        head = self._head
        # A rollback drops events from storage and leaves the cached head behind
        if (head is not None and self.storage.count(self.table_name) == head['sequence']
                and (head['id'] is None or self.storage.exists(self.table_name, head['id']))):
            return head

        head = {'sequence': 0, 'hash': "", 'id': None}
        for data in self.storage.load_all(self.table_name):
            if data['sequence'] > head['sequence']:
                head = {'sequence': data['sequence'], 'hash': data['current_hash'], 'id': data['id']}
        self._head = head
        return head

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """
        Log an audit event with hash chaining

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            metadata: Additional JSON-compatible event data

        Returns:
            Created AuditEvent
        """
        with self._lock:
            now = datetime.now(timezone.utc)
            head = self._chain_head()

            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                sequence=head['sequence'] + 1,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=head['hash'],
                current_hash="",
                metadata=metadata or {}
            )
            event.current_hash = event.calculate_hash()

            self.storage.save(self.table_name, event.id, event.to_dict())
            self._head = {'sequence': event.sequence, 'hash': event.current_hash, 'id': event.id}
            return event

    def get_events_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """Get all audit events for an entity, oldest first"""
        return [
            e for e in self._load_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        """Get all audit events of a type, oldest first"""
        return [e for e in self._load_events() if e.event_type == event_type]

    def get_all_events(self) -> List[AuditEvent]:
        """Get all audit events, oldest first"""
        return self._load_events()

    def count_events(self) -> int:
        """Get total number of audit events"""
        return self.storage.count(self.table_name)

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        events = self._load_events()
        result['total_events'] = len(events)

        previous_hash = ""
        for position, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash

        return result
