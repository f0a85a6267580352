"""Row and value types stored in the explorer database."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class DBEngineType(IntEnum):
    """Database engine a query is written for."""

    ANY = 0
    SQLITE = 1
    PGSQL = 2


@dataclass
class ExplorerState:
    key: str = ""
    value: str = ""


@dataclass
class ValidatorName:
    index: int = 0
    name: str = ""


@dataclass
class Block:
    root: bytes = b""
    slot: int = 0
    parent_root: bytes = b""
    state_root: bytes = b""
    orphaned: int = 0
    proposer: int = 0
    graffiti: bytes = b""
    graffiti_text: str = ""
    attestation_count: int = 0
    deposit_count: int = 0
    exit_count: int = 0
    withdraw_count: int = 0
    withdraw_amount: int = 0
    attester_slashing_count: int = 0
    proposer_slashing_count: int = 0
    bls_change_count: int = 0
    eth_transaction_count: int = 0
    eth_block_number: Optional[int] = None
    eth_block_hash: bytes = b""
    sync_participation: float = 0.0


@dataclass
class BlockOrphanedRef:
    root: bytes = b""
    orphaned: bool = False


@dataclass
class Epoch:
    epoch: int = 0
    validator_count: int = 0
    validator_balance: int = 0
    eligible: int = 0
    voted_target: int = 0
    voted_head: int = 0
    voted_total: int = 0
    block_count: int = 0
    orphaned_count: int = 0
    attestation_count: int = 0
    deposit_count: int = 0
    exit_count: int = 0
    withdraw_count: int = 0
    withdraw_amount: int = 0
    attester_slashing_count: int = 0
    proposer_slashing_count: int = 0
    bls_change_count: int = 0
    eth_transaction_count: int = 0
    sync_participation: float = 0.0


@dataclass
class OrphanedBlock:
    root: bytes = b""
    header_ver: int = 0
    header_ssz: bytes = b""
    block_ver: int = 0
    block_ssz: bytes = b""


@dataclass
class SlotAssignment:
    slot: int = 0
    proposer: int = 0


@dataclass
class SyncAssignment:
    period: int = 0
    index: int = 0
    validator: int = 0


@dataclass
class UnfinalizedBlock:
    root: bytes = b""
    slot: int = 0
    header_ver: int = 0
    header_ssz: bytes = b""
    block_ver: int = 0
    block_ssz: bytes = b""


@dataclass
class Blob:
    commitment: bytes = b""
    proof: bytes = b""
    size: int = 0
    blob: Optional[bytes] = None


@dataclass
class BlobAssignment:
    root: bytes = b""
    commitment: bytes = b""
    slot: int = 0


@dataclass
class TxFunctionSignature:
    signature: str = ""
    bytes: bytes = b""
    name: str = ""


@dataclass
class TxUnknownFunctionSignature:
    bytes: bytes = b""
    lastcheck: int = 0


@dataclass
class TxPendingFunctionSignature:
    bytes: bytes = b""
    queuetime: int = 0


@dataclass
class AssignedBlock:
    """A proposer slot, with the block proposed in it if there is one."""

    slot: int = 0
    proposer: int = 0
    block: Optional[Block] = None


@dataclass
class AssignedBlob:
    root: bytes = b""
    commitment: bytes = b""
    slot: int = 0
    blob: Optional[Blob] = None


@dataclass
class BlockFilter:
    """Filter for slot listings.

    ``with_orphaned`` and ``with_missing`` take 0 (exclude), 1 (include)
    or 2 (only those).
    """

    graffiti: str = ""
    proposer_index: Optional[int] = None
    proposer_name: str = ""
    with_orphaned: int = 0
    with_missing: int = 0


@dataclass
class SearchBlockResult:
    slot: int = 0
    root: bytes = b""
    orphaned: bool = False


@dataclass
class SearchGraffitiResult:
    graffiti: str = ""


@dataclass
class SearchNameResult:
    name: str = ""


@dataclass
class IndexerSyncState:
    """Progress marker of the indexer, kept as JSON in the explorer state."""

    epoch: int = 0

    def to_json(self) -> str:
        return json.dumps({"epoch": self.epoch}, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str | bytes) -> "IndexerSyncState":
        data = json.loads(text)
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("indexer sync state must be a JSON object")
        epoch = data.get("epoch", 0)
        if isinstance(epoch, bool) or not isinstance(epoch, int) or epoch < 0:
            raise ValueError(f"invalid epoch in indexer sync state: {epoch!r}")
        return cls(epoch=epoch)