"""
Vault Module

A vault binds an owner to exactly one tagged amount of a fixed denomination.
The module-level functions operate on vaults held in hand and decide every
failure before mutating anything, so a rejected transfer leaves both vaults
exactly as they were. VaultManager is the id-addressed layer on top: it loads
vaults from storage, applies the same functions, and saves, audits and logs
the result.
"""

import threading
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Tuple

from .amount import TaggedAmount, mint, zero
from .audit import AuditTrail, AuditEventType
from .config import LedgerConfig, get_config
from .denomination import Denomination, MAX_AMOUNT, max_amount, validate_quantity, format_quantity
from .errors import (
    DenominationMismatch, InsufficientValue, InvalidOperation,
    LedgerError, ValueOverflowError, VaultNotFound
)
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


@dataclass
class Vault(StorageRecord):
    """
    Owned holding of a single denomination
    """
    owner: str
    denomination: Denomination
    balance: TaggedAmount

    def __setattr__(self, name, new_value):
        if name == "denomination" and "denomination" in self.__dict__:
            raise InvalidOperation("The denomination of a vault is fixed for its lifetime")
        if name == "balance" and not isinstance(new_value, TaggedAmount):
            raise InvalidOperation(f"Vault balance must be a TaggedAmount, got {type(new_value).__name__}")
        if name == "balance" and new_value.denomination != self.denomination:
            raise DenominationMismatch(
                f"Vault of {self.denomination.code} cannot hold {new_value.denomination.code}"
            )
        super().__setattr__(name, new_value)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            'owner': self.owner,
            'denomination': self.denomination.code,
            'balance': self.balance.value
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], limit: int = MAX_AMOUNT) -> 'Vault':
        denomination = Denomination[data['denomination']]
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            owner=data['owner'],
            denomination=denomination,
            balance=mint(denomination, data['balance'], limit=limit)
        )

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


def create_vault(owner: str, denomination: Denomination, limit: int = MAX_AMOUNT) -> Vault:
    """Create an empty vault of `denomination` owned by `owner`"""
    if not isinstance(owner, str) or not owner.strip():
        raise InvalidOperation("Vault owner must be a non-empty string")
    now = datetime.now(timezone.utc)
    return Vault(
        id=str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
        owner=owner,
        denomination=denomination,
        balance=zero(denomination, limit=limit)
    )


def deposit(vault: Vault, amount: TaggedAmount) -> None:
    """Merge an in-hand amount into the vault balance"""
    vault.balance.merge(amount)
    vault._touch()


def withdraw(vault: Vault, quantity: int) -> TaggedAmount:
    """Split `quantity` out of the vault balance"""
    piece = vault.balance.split(quantity)
    vault._touch()
    return piece


def mint_into(vault: Vault, quantity: int) -> None:
    """Mint `quantity` of the vault's denomination into it"""
    deposit(vault, mint(vault.denomination, quantity, limit=vault.balance.limit))


def transfer(source: Vault, destination: Vault, quantity: int) -> None:
    """
    Move `quantity` from `source` to `destination`, all or nothing

    Raises:
        InvalidOperation: If source and destination are the same vault
        DenominationMismatch: If the vault balances hold different denominations
        InvalidAmount: If quantity is negative, not an int, or above the
            representable limit (checked before sufficiency)
        InsufficientValue: If source holds less than `quantity`
        ValueOverflowError: If destination cannot hold the result
    """
    if source is destination or source.id == destination.id:
        raise InvalidOperation("Cannot transfer from a vault to itself")
    # Compare the balance tags, which are what split and merge act on
    if source.balance.denomination != destination.balance.denomination:
        raise DenominationMismatch(
            f"Cannot transfer {source.balance.denomination.code} into a "
            f"{destination.balance.denomination.code} vault"
        )
    validate_quantity(quantity, source.balance.limit)
    if quantity > source.balance.value:
        raise InsufficientValue(
            f"Vault {source.id} holds {source.balance.to_string()}, "
            f"cannot transfer {format_quantity(quantity, source.denomination)}"
        )
    if not destination.balance.can_accept(quantity):
        raise ValueOverflowError(
            f"Vault {destination.id} cannot receive "
            f"{format_quantity(quantity, destination.denomination)} without overflow"
        )

    deposit(destination, withdraw(source, quantity))


def balance_of(vault: Vault) -> int:
    """Current balance of the vault"""
    return vault.balance.value


class VaultManager:
    """
    Manages vaults by id: creation, minting, transfers and balance queries

    All calls are serialized on one re-entrant lock, shared with the batch
    executor, so no two operations see the same vault at once.
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        config: Optional[LedgerConfig] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.vaults_table = "vaults"
        self.supply_table = "supply"
        self.limit = max_amount(self.config.amount_bits)
        self.lock = threading.RLock()
        self.logger = get_logger("tagged_ledger.vault")

    def _audit(self, event_type: AuditEventType, entity_id: str, metadata: Dict[str, Any]) -> None:
        if self.config.enable_audit_logging:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="vault",
                entity_id=entity_id,
                metadata=metadata
            )

    def _log(self, level: str, message: str, correlation_id: Optional[str] = None, **fields) -> None:
        # Steps of a batch log at debug under the batch id; the batch logs the outcome
        if correlation_id:
            level = "debug"
        log_action(self.logger, level, message, correlation_id=correlation_id, **fields)

    def _rejected(self, action: str, error: LedgerError,
                  correlation_id: Optional[str] = None, **details) -> None:
        self._log(
            "warning", f"{action} rejected: {error}", correlation_id,
            action=action, extra={"error": error.code, **details}
        )

    def create_vault(self, owner: str, denomination: Denomination,
                     correlation_id: Optional[str] = None) -> Vault:
        """
        Create a new empty vault

        Args:
            owner: Identity the vault is bound to
            denomination: Denomination the vault will hold for its lifetime
            correlation_id: Batch id when called as a batch step

        Returns:
            Created Vault with zero balance
        """
        with self.lock, self.storage.atomic():
            vault = create_vault(owner, denomination, limit=self.limit)
            self._save_vault(vault)

            self._audit(AuditEventType.VAULT_CREATED, vault.id, {
                "owner": owner,
                "denomination": denomination.code
            })

        self._log(
            "info", "Vault created", correlation_id,
            action="create_vault", resource=f"vault:{vault.id}",
            extra={"owner": owner, "denomination": denomination.code}
        )
        return vault

    def get_vault(self, vault_id: str) -> Optional[Vault]:
        """Get vault by ID"""
        with self.lock:
            data = self.storage.load(self.vaults_table, vault_id)
        if data:
            return Vault.from_dict(data, limit=self.limit)
        return None

    def require_vault(self, vault_id: str) -> Vault:
        """Get vault by ID or raise VaultNotFound"""
        vault = self.get_vault(vault_id)
        if vault is None:
            raise VaultNotFound(f"Vault {vault_id} not found")
        return vault

    def get_owner_vaults(self, owner: str) -> List[Vault]:
        """Get all vaults bound to an owner"""
        with self.lock:
            records = self.storage.find(self.vaults_table, {"owner": owner})
        return [Vault.from_dict(data, limit=self.limit) for data in records]

    def list_vaults(self, denomination: Optional[Denomination] = None) -> List[Vault]:
        """List vaults, optionally restricted to one denomination"""
        with self.lock:
            if denomination is None:
                records = self.storage.load_all(self.vaults_table)
            else:
                records = self.storage.find(self.vaults_table, {"denomination": denomination.code})
        return [Vault.from_dict(data, limit=self.limit) for data in records]

    def mint_into(self, vault_id: str, quantity: int,
                  correlation_id: Optional[str] = None) -> Vault:
        """
        Mint `quantity` into a vault

        Returns:
            The updated Vault
        """
        with self.lock:
            vault = self.require_vault(vault_id)
            try:
                with self.storage.atomic():
                    mint_into(vault, quantity)
                    self._save_vault(vault)
                    self._add_supply(vault.denomination, quantity)

                    self._audit(AuditEventType.VALUE_MINTED, vault.id, {
                        "quantity": quantity,
                        "denomination": vault.denomination.code,
                        "balance": vault.balance.value
                    })
            except LedgerError as e:
                self._rejected("mint_into", e, correlation_id, vault_id=vault_id, quantity=quantity)
                raise

        self._log(
            "info", f"Minted {format_quantity(quantity, vault.denomination)}", correlation_id,
            action="mint_into", resource=f"vault:{vault.id}",
            extra={"quantity": quantity, "balance": vault.balance.value}
        )
        return vault

    def transfer(self, source_id: str, destination_id: str, quantity: int,
                 correlation_id: Optional[str] = None) -> Tuple[Vault, Vault]:
        """
        Transfer `quantity` between two vaults atomically

        Returns:
            The updated (source, destination) pair
        """
        with self.lock:
            source = self.require_vault(source_id)
            destination = self.require_vault(destination_id)
            try:
                with self.storage.atomic():
                    transfer(source, destination, quantity)
                    self._save_vault(source)
                    self._save_vault(destination)

                    self._audit(AuditEventType.VALUE_TRANSFERRED, source.id, {
                        "destination": destination.id,
                        "quantity": quantity,
                        "denomination": source.denomination.code
                    })
            except LedgerError as e:
                self._rejected(
                    "transfer", e, correlation_id,
                    source=source_id, destination=destination_id, quantity=quantity
                )
                raise

        self._log(
            "info", f"Transferred {format_quantity(quantity, source.denomination)}", correlation_id,
            action="transfer", resource=f"vault:{source.id}",
            extra={"destination": destination.id, "quantity": quantity}
        )
        return source, destination

    def balance_of(self, vault_id: str) -> int:
        """Current balance of a vault"""
        with self.lock:
            return balance_of(self.require_vault(vault_id))

    def total_supply(self, denomination: Denomination) -> int:
        """Total quantity ever minted of a denomination"""
        with self.lock:
            record = self.storage.load(self.supply_table, denomination.code)
        return record['minted'] if record else 0

    def circulating(self, denomination: Denomination) -> int:
        """Sum of all vault balances of a denomination, read under the lock"""
        with self.lock:
            return sum(balance_of(vault) for vault in self.list_vaults(denomination))

    def _add_supply(self, denomination: Denomination, quantity: int) -> None:
        minted = self.total_supply(denomination) + quantity
        self.storage.save(self.supply_table, denomination.code, {
            'denomination': denomination.code,
            'minted': minted
        })

    def _save_vault(self, vault: Vault) -> None:
        self.storage.save(self.vaults_table, vault.id, vault.to_dict())
