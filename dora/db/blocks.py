"""Queries on blocks, epochs and orphaned blocks."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable, Mapping, Optional

from ..dbtypes import (
    AssignedBlock,
    Block,
    BlockFilter,
    BlockOrphanedRef,
    DBEngineType,
    Epoch,
    OrphanedBlock,
)
from .database import Database, Transaction

logger = logging.getLogger(__name__)

_BLOCK_FIELDS = (
    "root", "slot", "parent_root", "state_root", "orphaned", "proposer", "graffiti", "graffiti_text",
    "attestation_count", "deposit_count", "exit_count", "withdraw_count", "withdraw_amount",
    "attester_slashing_count", "proposer_slashing_count", "bls_change_count", "eth_transaction_count",
    "eth_block_number", "eth_block_hash", "sync_participation",
)
_EPOCH_FIELDS = (
    "epoch", "validator_count", "validator_balance", "eligible", "voted_target", "voted_head",
    "voted_total", "block_count", "orphaned_count", "attestation_count", "deposit_count", "exit_count",
    "withdraw_count", "withdraw_amount", "attester_slashing_count", "proposer_slashing_count",
    "bls_change_count", "eth_transaction_count", "sync_participation",
)
_ORPHANED_FIELDS = ("root", "header_ver", "header_ssz", "block_ver", "block_ssz")

_BLOCK_COLUMNS = ", ".join(_BLOCK_FIELDS)
_EPOCH_COLUMNS = ", ".join(_EPOCH_FIELDS)
_ORPHANED_COLUMNS = ", ".join(_ORPHANED_FIELDS)

_NOT_ORPHANED = "AND orphaned = 0"


def _placeholders(count: int) -> str:
    return ", ".join(f"${i + 1}" for i in range(count))


def _block_from_row(values: Mapping[str, Any]) -> Block:
    return Block(**{name: value for name, value in values.items() if value is not None})


def _epoch_from_row(values: Mapping[str, Any]) -> Epoch:
    return Epoch(**{name: value for name, value in values.items() if value is not None})


def insert_block(tx: Transaction, block: Block) -> None:
    values = _placeholders(len(_BLOCK_FIELDS))
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    f"INSERT INTO blocks ({_BLOCK_COLUMNS}) VALUES ({values}) "
                    "ON CONFLICT (root) DO UPDATE SET orphaned = excluded.orphaned"
                ),
                DBEngineType.SQLITE: f"INSERT OR REPLACE INTO blocks ({_BLOCK_COLUMNS}) VALUES ({values})",
            }
        ),
        [getattr(block, name) for name in _BLOCK_FIELDS],
    )


def insert_epoch(tx: Transaction, epoch: Epoch) -> None:
    values = _placeholders(len(_EPOCH_FIELDS))
    updates = ", ".join(f"{name} = excluded.{name}" for name in _EPOCH_FIELDS[1:])
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    f"INSERT INTO epochs ({_EPOCH_COLUMNS}) VALUES ({values}) "
                    f"ON CONFLICT (epoch) DO UPDATE SET {updates}"
                ),
                DBEngineType.SQLITE: f"INSERT OR REPLACE INTO epochs ({_EPOCH_COLUMNS}) VALUES ({values})",
            }
        ),
        [getattr(epoch, name) for name in _EPOCH_FIELDS],
    )


def insert_orphaned_block(tx: Transaction, block: OrphanedBlock) -> None:
    values = _placeholders(len(_ORPHANED_FIELDS))
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    f"INSERT INTO orphaned_blocks ({_ORPHANED_COLUMNS}) VALUES ({values}) "
                    "ON CONFLICT (root) DO NOTHING"
                ),
                DBEngineType.SQLITE: (
                    f"INSERT OR IGNORE INTO orphaned_blocks ({_ORPHANED_COLUMNS}) VALUES ({values})"
                ),
            }
        ),
        [getattr(block, name) for name in _ORPHANED_FIELDS],
    )


def get_orphaned_block(db: Database, root: bytes) -> Optional[OrphanedBlock]:
    try:
        row = db.query_one(
            f"SELECT {_ORPHANED_COLUMNS} FROM orphaned_blocks WHERE root = $1", (bytes(root),)
        )
    except sqlite3.Error:
        return None
    if row is None:
        return None
    return OrphanedBlock(**{name: value for name, value in row.items() if value is not None})


def get_epochs(db: Database, first_epoch: int, limit: int) -> Optional[list[Epoch]]:
    """Epochs at or below ``first_epoch``, newest first; None on a database error."""
    try:
        rows = db.query(
            f"SELECT {_EPOCH_COLUMNS} FROM epochs WHERE epoch <= $1 ORDER BY epoch DESC LIMIT $2",
            (first_epoch, limit),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching epochs: %s", exc)
        return None
    return [_epoch_from_row(row) for row in rows]


def get_blocks(db: Database, first_block: int, limit: int, with_orphaned: bool) -> Optional[list[Block]]:
    """Blocks at or below slot ``first_block``, newest first; None on a database error."""
    orphaned_limit = "" if with_orphaned else _NOT_ORPHANED
    try:
        rows = db.query(
            f"SELECT {_BLOCK_COLUMNS} FROM blocks WHERE slot <= $1 {orphaned_limit} "
            "ORDER BY slot DESC LIMIT $2",
            (first_block, limit),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching blocks: %s", exc)
        return None
    return [_block_from_row(row) for row in rows]


def get_blocks_for_slots(
    db: Database, first_slot: int, last_slot: int, with_orphaned: bool
) -> Optional[list[Block]]:
    """Blocks with ``last_slot <= slot <= first_slot``, newest first."""
    orphaned_limit = "" if with_orphaned else _NOT_ORPHANED
    try:
        rows = db.query(
            f"SELECT {_BLOCK_COLUMNS} FROM blocks WHERE slot <= $1 AND slot >= $2 "
            f"{orphaned_limit} ORDER BY slot DESC",
            (first_slot, last_slot),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching blocks for slot: %s", exc)
        return None
    return [_block_from_row(row) for row in rows]


def get_blocks_by_parent_root(db: Database, parent_root: bytes) -> Optional[list[Block]]:
    try:
        rows = db.query(
            f"SELECT {_BLOCK_COLUMNS} FROM blocks WHERE parent_root = $1 ORDER BY slot DESC",
            (bytes(parent_root),),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching blocks by parent root: %s", exc)
        return None
    return [_block_from_row(row) for row in rows]


def get_block_by_root(db: Database, root: bytes) -> Optional[Block]:
    try:
        row = db.query_one(f"SELECT {_BLOCK_COLUMNS} FROM blocks WHERE root = $1", (bytes(root),))
    except sqlite3.Error:
        return None
    return None if row is None else _block_from_row(row)


def get_filtered_blocks(
    db: Database, block_filter: BlockFilter, first_slot: int, offset: int, limit: int
) -> Optional[list[AssignedBlock]]:
    """Proposer slots below ``first_slot`` matching the filter, newest first."""
    args: list[Any] = []

    def arg(value: Any) -> int:
        args.append(value)
        return len(args)

    sql = [
        "SELECT slot_assignments.slot AS slot, "
        "COALESCE(blocks.proposer, slot_assignments.proposer) AS proposer"
    ]
    sql.extend(f', blocks.{name} AS "block.{name}"' for name in _BLOCK_FIELDS)
    sql.append(" FROM slot_assignments ")
    sql.append(" LEFT JOIN blocks ON blocks.slot = slot_assignments.slot ")
    if block_filter.proposer_name:
        sql.append(
            ' LEFT JOIN validator_names ON validator_names."index" = '
            "COALESCE(blocks.proposer, slot_assignments.proposer) "
        )

    sql.append(f" WHERE slot_assignments.slot < ${arg(first_slot)} ")

    if block_filter.with_missing == 0:
        sql.append(" AND blocks.root IS NOT NULL ")
    elif block_filter.with_missing == 2:
        sql.append(" AND blocks.root IS NULL ")
    if block_filter.with_orphaned == 0:
        sql.append(" AND (")
        if block_filter.with_missing != 0:
            sql.append("blocks.orphaned IS NULL OR")
        sql.append(" blocks.orphaned = 0) ")
    elif block_filter.with_orphaned == 2:
        sql.append(" AND blocks.orphaned = 1")
    if block_filter.proposer_index is not None:
        idx = arg(block_filter.proposer_index)
        sql.append(f" AND (slot_assignments.proposer = ${idx} OR blocks.proposer = ${idx}) ")
    if block_filter.graffiti:
        idx = arg(f"%{block_filter.graffiti}%")
        sql.append(
            db.engine_query(
                {
                    DBEngineType.PGSQL: f" AND blocks.graffiti_text ilike ${idx} ",
                    DBEngineType.SQLITE: f" AND blocks.graffiti_text LIKE ${idx} ",
                }
            )
        )
    if block_filter.proposer_name:
        idx = arg(f"%{block_filter.proposer_name}%")
        sql.append(
            db.engine_query(
                {
                    DBEngineType.PGSQL: f" AND validator_names.name ilike ${idx} ",
                    DBEngineType.SQLITE: f" AND validator_names.name LIKE ${idx} ",
                }
            )
        )

    sql.append(" ORDER BY slot_assignments.slot DESC ")
    limit_idx = arg(limit)
    offset_idx = arg(offset)
    sql.append(f" LIMIT ${limit_idx} OFFSET ${offset_idx} ")
    query = "".join(sql)

    try:
        rows = db.query(query, args)
    except sqlite3.Error as exc:
        logger.error("Error while fetching filtered blocks: %s: %s", query, exc)
        return None

    assigned: list[AssignedBlock] = []
    for row in rows:
        try:
            entry = AssignedBlock(slot=int(row["slot"]), proposer=int(row["proposer"]))
            values = {name: row[f"block.{name}"] for name in _BLOCK_FIELDS}
            if values["root"] is not None:
                entry.block = _block_from_row(values)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Error while parsing assigned block: %s", exc)
            continue
        assigned.append(entry)
    return assigned


def get_block_orphaned_refs(db: Database, block_roots: Iterable[bytes]) -> Optional[list[BlockOrphanedRef]]:
    roots = [bytes(root) for root in block_roots]
    if not roots:
        return []
    try:
        rows = db.query(
            f"SELECT root, orphaned FROM blocks WHERE root in ({_placeholders(len(roots))})", roots
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching blocks: %s", exc)
        return None
    return [BlockOrphanedRef(root=row["root"], orphaned=bool(row["orphaned"])) for row in rows]


def get_highest_root_before_slot(db: Database, slot: int, with_orphaned: bool) -> Optional[bytes]:
    """Root of the newest block below ``slot``, or None if there is none."""
    orphaned_limit = "" if with_orphaned else _NOT_ORPHANED
    try:
        row = db.query_one(
            f"SELECT root FROM blocks WHERE slot < $1 {orphaned_limit} "
            "ORDER BY slot DESC LIMIT 1",
            (slot,),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching highest root before %s: %s", slot, exc)
        return None
    if row is None:
        logger.error("Error while fetching highest root before %s: no rows", slot)
        return None
    return row["root"]