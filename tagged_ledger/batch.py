"""
Batch Execution Module

Applies an ordered list of vault operations as one atomic unit. Either every
operation takes effect, or the first failure rolls the whole batch back
(vault balances, supply counters and audit events alike) and is reported as
BatchAborted with the index of the failing operation.

Vault arguments are vault ids, or a result reference "$<i>" naming the vault
created by the i-th operation of the same batch.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from .audit import AuditEventType
from .config import LedgerConfig
from .denomination import Denomination
from .errors import BatchAborted, InvalidOperation, LedgerError
from .logging_config import get_logger, log_action
from .vault import VaultManager


class OperationKind(Enum):
    """Operations a batch may contain"""
    CREATE_VAULT = "create_vault"
    MINT_INTO = "mint_into"
    TRANSFER = "transfer"
    BALANCE_OF = "balance_of"


def result_ref(index: int) -> str:
    """Reference to the vault created by operation `index` of the same batch"""
    return f"${index}"


@dataclass
class BatchOperation:
    """Single operation invocation with literal arguments"""
    kind: OperationKind
    args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create_vault(cls, owner: str, denomination: Union[Denomination, str]) -> 'BatchOperation':
        return cls(OperationKind.CREATE_VAULT, {"owner": owner, "denomination": denomination})

    @classmethod
    def mint_into(cls, vault: str, quantity: int) -> 'BatchOperation':
        return cls(OperationKind.MINT_INTO, {"vault": vault, "quantity": quantity})

    @classmethod
    def transfer(cls, source: str, destination: str, quantity: int) -> 'BatchOperation':
        return cls(OperationKind.TRANSFER, {
            "source": source, "destination": destination, "quantity": quantity
        })

    @classmethod
    def balance_of(cls, vault: str) -> 'BatchOperation':
        return cls(OperationKind.BALANCE_OF, {"vault": vault})


@dataclass
class BatchResult:
    """
    Outcome of a committed batch

    `results` holds one entry per operation: the new vault id for
    create_vault, the quantity for balance_of, None otherwise.
    """
    batch_id: str
    results: List[Any]
    executed_at: datetime

    @property
    def created_vaults(self) -> List[str]:
        return [r for r in self.results if isinstance(r, str)]


class BatchExecutor:
    """
    Executes operation batches against a VaultManager, all or nothing
    """

    def __init__(self, vault_manager: VaultManager, config: Optional[LedgerConfig] = None):
        self.vault_manager = vault_manager
        self.storage = vault_manager.storage
        self.config = config or vault_manager.config
        self.logger = get_logger("tagged_ledger.batch")

    def execute(self, operations: Sequence[BatchOperation]) -> BatchResult:
        """
        Execute operations in order as a single atomic unit

        Args:
            operations: Ordered operation invocations

        Returns:
            BatchResult with per-operation results

        Raises:
            InvalidOperation: If the batch is empty or too large (nothing runs)
            BatchAborted: If any operation fails (nothing is committed)
        """
        if not operations:
            raise InvalidOperation("Batch must contain at least one operation")
        if len(operations) > self.config.max_batch_size:
            raise InvalidOperation(
                f"Batch of {len(operations)} operations exceeds limit of {self.config.max_batch_size}"
            )

        batch_id = str(uuid.uuid4())
        results: List[Any] = []
        kinds: List[OperationKind] = []

        with self.vault_manager.lock:
            try:
                with self.storage.atomic():
                    for index, operation in enumerate(operations):
                        try:
                            results.append(self._apply(operation, results, kinds, batch_id))
                        except LedgerError as e:
                            raise BatchAborted(index, operation, e, batch_id=batch_id) from e
                        kinds.append(operation.kind)

                    if self.config.enable_audit_logging:
                        self.vault_manager.audit_trail.log_event(
                            event_type=AuditEventType.BATCH_EXECUTED,
                            entity_type="batch",
                            entity_id=batch_id,
                            metadata={"operations": [k.value for k in kinds]}
                        )
            except BatchAborted as e:
                log_action(
                    self.logger, "warning", f"Batch aborted: {e}",
                    action="execute_batch", resource=f"batch:{batch_id}",
                    correlation_id=batch_id,
                    extra={"index": e.index, "error": e.cause_code, "operations": len(operations)}
                )
                raise

        log_action(
            self.logger, "info", f"Batch committed with {len(operations)} operations",
            action="execute_batch", resource=f"batch:{batch_id}",
            correlation_id=batch_id,
            extra={"operations": len(operations)}
        )
        return BatchResult(
            batch_id=batch_id,
            results=results,
            executed_at=datetime.now(timezone.utc)
        )

    def _apply(self, operation: BatchOperation, results: List[Any],
               kinds: List[OperationKind], batch_id: str) -> Any:
        if not isinstance(operation, BatchOperation):
            raise InvalidOperation(f"Not a batch operation: {operation!r}")
        manager = self.vault_manager
        args = operation.args

        if operation.kind == OperationKind.CREATE_VAULT:
            denomination = self._denomination(self._arg(args, "denomination"))
            return manager.create_vault(
                self._arg(args, "owner"), denomination, correlation_id=batch_id
            ).id

        if operation.kind == OperationKind.MINT_INTO:
            vault_id = self._resolve(self._arg(args, "vault"), results, kinds)
            manager.mint_into(vault_id, self._arg(args, "quantity"), correlation_id=batch_id)
            return None

        if operation.kind == OperationKind.TRANSFER:
            source_id = self._resolve(self._arg(args, "source"), results, kinds)
            destination_id = self._resolve(self._arg(args, "destination"), results, kinds)
            manager.transfer(
                source_id, destination_id, self._arg(args, "quantity"), correlation_id=batch_id
            )
            return None

        if operation.kind == OperationKind.BALANCE_OF:
            return manager.balance_of(self._resolve(self._arg(args, "vault"), results, kinds))

        raise InvalidOperation(f"Unsupported operation: {operation.kind}")

    @staticmethod
    def _arg(args: Dict[str, Any], name: str) -> Any:
        if name not in args:
            raise InvalidOperation(f"Missing argument: {name}")
        return args[name]

    @staticmethod
    def _denomination(value: Union[Denomination, str]) -> Denomination:
        if isinstance(value, Denomination):
            return value
        try:
            return Denomination.from_code(value)
        except (ValueError, AttributeError):
            raise InvalidOperation(f"Unknown denomination: {value!r}")

    @staticmethod
    def _resolve(reference: str, results: List[Any], kinds: List[OperationKind]) -> str:
        """Turn a vault id or "$<i>" result reference into a vault id"""
        if not isinstance(reference, str):
            raise InvalidOperation(f"Vault reference must be a string, got {reference!r}")
        if not reference.startswith("$"):
            return reference
        try:
            index = int(reference[1:])
        except ValueError:
            raise InvalidOperation(f"Malformed result reference: {reference}")
        if index < 0 or index >= len(kinds):
            raise InvalidOperation(f"Result reference {reference} does not name an earlier operation")
        if kinds[index] != OperationKind.CREATE_VAULT:
            raise InvalidOperation(f"Result reference {reference} does not name a created vault")
        return results[index]
