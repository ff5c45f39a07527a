"""
Ledger Error Taxonomy

Every failure raised by the ledger derives from LedgerError and carries a
stable `code` used in structured logs and API error bodies. Where a builtin
exception has the same meaning, the ledger error also derives from it.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for ledger failures"""
    code = "ledger_error"


class InvalidAmount(LedgerError, ValueError):
    """Quantity is not an unsigned integer within the representable range"""
    code = "invalid_amount"


class InsufficientValue(LedgerError, ValueError):
    """A split or transfer asked for more than the source holds"""
    code = "insufficient_value"


class ValueOverflowError(LedgerError, OverflowError):
    """A merge would push an amount past the representable maximum"""
    code = "overflow"


class DenominationMismatch(LedgerError, ValueError):
    """Amounts or vaults of different denominations were mixed"""
    code = "denomination_mismatch"


class AmountConsumed(LedgerError):
    """The amount was already merged or destroyed and can no longer be used"""
    code = "amount_consumed"


class NonZeroAmount(LedgerError):
    """Only an empty amount may be destroyed"""
    code = "non_zero_amount"


class VaultNotFound(LedgerError, LookupError):
    """No vault is registered under the given id"""
    code = "vault_not_found"


class InvalidOperation(LedgerError):
    """The operation is malformed or not allowed on these arguments"""
    code = "invalid_operation"


class BatchAborted(LedgerError):
    """
    A batch operation failed and every effect of the batch was discarded

    Attributes:
        index: Position of the failing operation in the batch
        operation: The failing operation
        cause: The underlying ledger error
    """
    code = "batch_aborted"

    def __init__(self, index: int, operation: Any, cause: Exception,
                 batch_id: Optional[str] = None):
        self.index = index
        self.operation = operation
        self.cause = cause
        self.batch_id = batch_id
        kind = getattr(operation, "kind", None)
        kind_name = getattr(kind, "value", kind)
        super().__init__(f"Batch aborted at operation {index} ({kind_name}): {cause}")

    @property
    def cause_code(self) -> str:
        """Code of the underlying failure"""
        return getattr(self.cause, "code", type(self.cause).__name__)
