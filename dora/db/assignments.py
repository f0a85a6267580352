"""Queries on proposer and sync assignments, unfinalized data and blobs."""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from ..dbtypes import (
    Blob,
    BlobAssignment,
    DBEngineType,
    Epoch,
    SlotAssignment,
    SyncAssignment,
    UnfinalizedBlock,
)
from .blocks import _EPOCH_COLUMNS, _EPOCH_FIELDS, _epoch_from_row
from .database import Database, Transaction, _value_rows

logger = logging.getLogger(__name__)

_UNFINALIZED_FIELDS = ("root", "slot", "header_ver", "header_ssz", "block_ver", "block_ssz")
_UNFINALIZED_COLUMNS = ", ".join(_UNFINALIZED_FIELDS)


def _placeholders(count: int) -> str:
    return ", ".join(f"${i + 1}" for i in range(count))


def _without_nulls(row: dict) -> dict:
    return {name: value for name, value in row.items() if value is not None}


def insert_slot_assignments(tx: Transaction, slot_assignments: Iterable[SlotAssignment]) -> None:
    assignments = list(slot_assignments)
    if not assignments:
        raise ValueError("no slot assignments to insert")
    sql = (
        tx.engine_query(
            {
                DBEngineType.PGSQL: "INSERT INTO slot_assignments (slot, proposer) VALUES ",
                DBEngineType.SQLITE: "INSERT OR REPLACE INTO slot_assignments (slot, proposer) VALUES ",
            }
        )
        + _value_rows(len(assignments), 2)
        + tx.engine_query(
            {
                DBEngineType.PGSQL: " ON CONFLICT (slot) DO UPDATE SET proposer = excluded.proposer",
                DBEngineType.SQLITE: "",
            }
        )
    )
    args = [value for entry in assignments for value in (entry.slot, entry.proposer)]
    tx.execute(sql, args)


def insert_sync_assignments(tx: Transaction, sync_assignments: Iterable[SyncAssignment]) -> None:
    assignments = list(sync_assignments)
    if not assignments:
        raise ValueError("no sync assignments to insert")
    sql = (
        tx.engine_query(
            {
                DBEngineType.PGSQL: 'INSERT INTO sync_assignments (period, "index", validator) VALUES ',
                DBEngineType.SQLITE: (
                    'INSERT OR REPLACE INTO sync_assignments (period, "index", validator) VALUES '
                ),
            }
        )
        + _value_rows(len(assignments), 3)
        + tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    ' ON CONFLICT (period, "index") DO UPDATE SET validator = excluded.validator'
                ),
                DBEngineType.SQLITE: "",
            }
        )
    )
    args = [
        value
        for entry in assignments
        for value in (entry.period, entry.index, entry.validator)
    ]
    tx.execute(sql, args)


def get_slot_assignments_for_slots(
    db: Database, first_slot: int, last_slot: int
) -> Optional[list[SlotAssignment]]:
    """Assignments with ``last_slot <= slot <= first_slot``; None on a database error."""
    try:
        rows = db.query(
            "SELECT slot, proposer FROM slot_assignments WHERE slot <= $1 AND slot >= $2",
            (first_slot, last_slot),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching slot assignments: %s", exc)
        return None
    return [SlotAssignment(slot=row["slot"], proposer=row["proposer"]) for row in rows]


def get_slot_assignment(db: Database, slot: int) -> Optional[SlotAssignment]:
    try:
        row = db.query_one("SELECT slot, proposer FROM slot_assignments WHERE slot = $1", (slot,))
    except sqlite3.Error:
        return None
    if row is None:
        return None
    return SlotAssignment(slot=row["slot"], proposer=row["proposer"])


def get_sync_assignments_for_period(db: Database, period: int) -> Optional[list[int]]:
    """Validator indexes of a sync committee period, in committee order."""
    try:
        rows = db.query(
            'SELECT validator FROM sync_assignments WHERE period = $1 ORDER BY "index" ASC',
            (period,),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching sync assignments: %s", exc)
        return None
    return [row["validator"] for row in rows]


def insert_unfinalized_block(tx: Transaction, block: UnfinalizedBlock) -> None:
    values = _placeholders(len(_UNFINALIZED_FIELDS))
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    f"INSERT INTO unfinalized_blocks ({_UNFINALIZED_COLUMNS}) VALUES ({values}) "
                    "ON CONFLICT (root) DO NOTHING"
                ),
                DBEngineType.SQLITE: (
                    f"INSERT OR IGNORE INTO unfinalized_blocks ({_UNFINALIZED_COLUMNS}) VALUES ({values})"
                ),
            }
        ),
        [getattr(block, name) for name in _UNFINALIZED_FIELDS],
    )


def get_unfinalized_blocks(db: Database) -> Optional[list[UnfinalizedBlock]]:
    try:
        rows = db.query(f"SELECT {_UNFINALIZED_COLUMNS} FROM unfinalized_blocks")
    except sqlite3.Error as exc:
        logger.error("Error while fetching unfinalized blocks: %s", exc)
        return None
    return [UnfinalizedBlock(**_without_nulls(row)) for row in rows]


def get_unfinalized_block(db: Database, root: bytes) -> Optional[UnfinalizedBlock]:
    root = bytes(root)
    try:
        row = db.query_one(
            f"SELECT {_UNFINALIZED_COLUMNS} FROM unfinalized_blocks WHERE root = $1", (root,)
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching unfinalized block 0x%s: %s", root.hex(), exc)
        return None
    if row is None:
        logger.error("Error while fetching unfinalized block 0x%s: no rows", root.hex())
        return None
    return UnfinalizedBlock(**_without_nulls(row))


def insert_unfinalized_epoch(tx: Transaction, epoch: Epoch) -> None:
    values = _placeholders(len(_EPOCH_FIELDS))
    updates = ", ".join(f"{name} = excluded.{name}" for name in _EPOCH_FIELDS[1:])
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    f"INSERT INTO unfinalized_epochs ({_EPOCH_COLUMNS}) VALUES ({values}) "
                    f"ON CONFLICT (epoch) DO UPDATE SET {updates}"
                ),
                DBEngineType.SQLITE: (
                    f"INSERT OR REPLACE INTO unfinalized_epochs ({_EPOCH_COLUMNS}) VALUES ({values})"
                ),
            }
        ),
        [getattr(epoch, name) for name in _EPOCH_FIELDS],
    )


def get_unfinalized_epoch(db: Database, epoch: int) -> Optional[Epoch]:
    try:
        row = db.query_one(
            f"SELECT {_EPOCH_COLUMNS} FROM unfinalized_epochs WHERE epoch = $1", (epoch,)
        )
    except sqlite3.Error:
        return None
    return None if row is None else _epoch_from_row(row)


def delete_unfinalized_before(tx: Transaction, slot: int, slots_per_epoch: int) -> None:
    """Drop unfinalized blocks below ``slot`` and unfinalized epochs below its epoch."""
    if slots_per_epoch <= 0:
        raise ValueError(f"slots per epoch must be positive, got {slots_per_epoch}")
    tx.execute("DELETE FROM unfinalized_blocks WHERE slot < $1", (slot,))
    tx.execute("DELETE FROM unfinalized_epochs WHERE epoch < $1", (slot // slots_per_epoch,))


def insert_blob(tx: Transaction, blob: Blob) -> None:
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    "INSERT INTO blobs (commitment, proof, size, blob) VALUES ($1, $2, $3, $4) "
                    "ON CONFLICT (commitment) DO UPDATE SET size = excluded.size, blob = excluded.blob"
                ),
                DBEngineType.SQLITE: (
                    "INSERT OR REPLACE INTO blobs (commitment, proof, size, blob) VALUES ($1, $2, $3, $4)"
                ),
            }
        ),
        (blob.commitment, blob.proof, blob.size, blob.blob),
    )


def insert_blob_assignment(tx: Transaction, blob_assignment: BlobAssignment) -> None:
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    "INSERT INTO blob_assignments (root, commitment, slot) VALUES ($1, $2, $3) "
                    "ON CONFLICT (root, commitment) DO NOTHING"
                ),
                DBEngineType.SQLITE: (
                    "INSERT OR REPLACE INTO blob_assignments (root, commitment, slot) VALUES ($1, $2, $3)"
                ),
            }
        ),
        (blob_assignment.root, blob_assignment.commitment, blob_assignment.slot),
    )


def get_blob(db: Database, commitment: bytes, with_data: bool) -> Optional[Blob]:
    """The blob with this commitment; its data is loaded only if ``with_data``."""
    columns = "commitment, proof, size, blob" if with_data else "commitment, proof, size"
    try:
        row = db.query_one(f"SELECT {columns} FROM blobs WHERE commitment = $1", (bytes(commitment),))
    except sqlite3.Error:
        return None
    return None if row is None else Blob(**row)


def get_latest_blob_assignment(db: Database, commitment: bytes) -> Optional[BlobAssignment]:
    try:
        row = db.query_one(
            "SELECT root, commitment, slot FROM blob_assignments WHERE commitment = $1 "
            "ORDER BY slot DESC LIMIT 1",
            (bytes(commitment),),
        )
    except sqlite3.Error:
        return None
    return None if row is None else BlobAssignment(**row)