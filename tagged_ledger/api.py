"""
FastAPI REST API Module

Exposes vault creation, minting, transfers, balance queries and atomic
operation batches over HTTP. Quantities travel as integers in the smallest
unit of their denomination.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List
from fastapi import FastAPI, HTTPException, Depends, status
from pydantic import BaseModel, Field
import uvicorn

from .audit import AuditTrail
from .batch import BatchExecutor, BatchOperation, OperationKind
from .config import LedgerConfig, get_config
from .denomination import Denomination, format_quantity
from .errors import BatchAborted, LedgerError, VaultNotFound
from .logging_config import setup_logging
from .storage import InMemoryStorage
from .vault import Vault, VaultManager


class CreateVaultRequest(BaseModel):
    owner: str
    denomination: str = Field(..., description="Denomination code (USD, EUR, etc.)")


class MintRequest(BaseModel):
    quantity: int = Field(..., description="Quantity in smallest units")


class TransferRequest(BaseModel):
    source_id: str
    destination_id: str
    quantity: int = Field(..., description="Quantity in smallest units")


class OperationModel(BaseModel):
    kind: str = Field(..., description="create_vault, mint_into, transfer or balance_of")
    args: Dict[str, Any] = Field(default_factory=dict)

    def to_operation(self) -> BatchOperation:
        return BatchOperation(OperationKind(self.kind), dict(self.args))


class BatchRequest(BaseModel):
    operations: List[OperationModel]


class LedgerSystem:
    """Ledger components wired together over one in-memory store"""

    def __init__(self, config: LedgerConfig = None):
        self.config = config or get_config()
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.vault_manager = VaultManager(self.storage, self.audit_trail, self.config)
        self.batch_executor = BatchExecutor(self.vault_manager, self.config)


# Global ledger instance
ledger_system = LedgerSystem()


app = FastAPI(
    title=get_config().api_title,
    description="Denomination-tagged vault ledger with atomic batches",
    version="1.0.0"
)


def get_ledger_system() -> LedgerSystem:
    return ledger_system


def _vault_view(vault: Vault) -> Dict[str, Any]:
    return {
        "id": vault.id,
        "owner": vault.owner,
        "denomination": vault.denomination.code,
        "balance": vault.balance.value,
        "formatted_balance": vault.balance.to_string(),
        "created_at": vault.created_at.isoformat(),
        "updated_at": vault.updated_at.isoformat()
    }


def _error_detail(error: LedgerError) -> Dict[str, Any]:
    return {"error": error.code, "message": str(error)}


def _raise_http(error: LedgerError):
    if isinstance(error, VaultNotFound):
        raise HTTPException(status_code=404, detail=_error_detail(error))
    raise HTTPException(status_code=400, detail=_error_detail(error))


def _parse_denomination(code: str) -> Denomination:
    try:
        return Denomination.from_code(code)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "invalid_denomination", "message": str(e)})


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/vaults", status_code=status.HTTP_201_CREATED)
async def create_vault(
    request: CreateVaultRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create a new empty vault"""
    denomination = _parse_denomination(request.denomination)
    try:
        vault = system.vault_manager.create_vault(request.owner, denomination)
    except LedgerError as e:
        _raise_http(e)

    return {
        "vault_id": vault.id,
        "owner": vault.owner,
        "denomination": vault.denomination.code,
        "message": "Vault created successfully"
    }


@app.get("/vaults/{vault_id}")
async def get_vault(
    vault_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get vault details"""
    vault = system.vault_manager.get_vault(vault_id)
    if not vault:
        raise HTTPException(status_code=404, detail={"error": "vault_not_found", "message": "Vault not found"})
    return _vault_view(vault)


@app.get("/vaults/{vault_id}/balance")
async def get_balance(
    vault_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get vault balance"""
    try:
        vault = system.vault_manager.require_vault(vault_id)
    except LedgerError as e:
        _raise_http(e)

    return {
        "vault_id": vault.id,
        "balance": vault.balance.value,
        "formatted": vault.balance.to_string()
    }


@app.post("/vaults/{vault_id}/mint")
async def mint(
    vault_id: str,
    request: MintRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Mint value into a vault"""
    try:
        vault = system.vault_manager.mint_into(vault_id, request.quantity)
    except LedgerError as e:
        _raise_http(e)

    return {
        "vault_id": vault.id,
        "balance": vault.balance.value,
        "message": f"Minted {format_quantity(request.quantity, vault.denomination)}"
    }


@app.post("/transfers")
async def transfer(
    request: TransferRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Transfer value between two vaults"""
    try:
        source, destination = system.vault_manager.transfer(
            request.source_id, request.destination_id, request.quantity
        )
    except LedgerError as e:
        _raise_http(e)

    return {
        "source": {"vault_id": source.id, "balance": source.balance.value},
        "destination": {"vault_id": destination.id, "balance": destination.balance.value},
        "message": "Transfer completed successfully"
    }


@app.post("/batches")
async def execute_batch(
    request: BatchRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Execute an ordered batch of operations atomically"""
    try:
        operations = [op.to_operation() for op in request.operations]
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "invalid_operation", "message": str(e)})

    try:
        result = system.batch_executor.execute(operations)
    except BatchAborted as e:
        raise HTTPException(status_code=400, detail={
            "error": e.cause_code,
            "index": e.index,
            "message": str(e.cause)
        })
    except LedgerError as e:
        _raise_http(e)

    return {
        "batch_id": result.batch_id,
        "results": result.results,
        "executed_at": result.executed_at.isoformat()
    }


@app.get("/audit/verify")
async def verify_audit(system: LedgerSystem = Depends(get_ledger_system)):
    """Verify the audit chain"""
    return system.audit_trail.verify_integrity()


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the API server with uvicorn"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)
    uvicorn.run(
        app,
        host=host or config.api_host,
        port=port or config.api_port,
        log_level="debug" if debug else "info"
    )
