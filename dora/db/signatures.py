"""Queries on transaction function signatures and the lookup queue."""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from ..dbtypes import (
    DBEngineType,
    TxFunctionSignature,
    TxPendingFunctionSignature,
    TxUnknownFunctionSignature,
)
from .database import Database, Transaction, _in_list, _value_rows

logger = logging.getLogger(__name__)


def get_tx_function_signatures_by_bytes(
    db: Database, sig_bytes: Iterable[bytes]
) -> Optional[list[TxFunctionSignature]]:
    """Known signatures whose 4-byte selector is in ``sig_bytes``; None on a database error."""
    selectors = [bytes(sig) for sig in sig_bytes]
    if not selectors:
        return []
    try:
        rows = db.query(
            "SELECT signature, bytes, name FROM tx_function_signatures "
            f"WHERE bytes IN ({_in_list(len(selectors))})",
            selectors,
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching tx function signatures: %s", exc)
        return None
    return [TxFunctionSignature(**row) for row in rows]


def insert_tx_function_signature(tx: Transaction, signature: TxFunctionSignature) -> None:
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: (
                    "INSERT INTO tx_function_signatures (signature, bytes, name) VALUES ($1, $2, $3) "
                    "ON CONFLICT (bytes) DO NOTHING"
                ),
                DBEngineType.SQLITE: (
                    "INSERT OR IGNORE INTO tx_function_signatures (signature, bytes, name) "
                    "VALUES ($1, $2, $3)"
                ),
            }
        ),
        (signature.signature, bytes(signature.bytes), signature.name),
    )


def get_unknown_function_signatures(
    db: Database, sig_bytes: Iterable[bytes]
) -> Optional[list[TxUnknownFunctionSignature]]:
    selectors = [bytes(sig) for sig in sig_bytes]
    if not selectors:
        return []
    try:
        rows = db.query(
            "SELECT bytes, lastcheck FROM tx_unknown_signatures "
            f"WHERE bytes in ({_in_list(len(selectors))})",
            selectors,
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching unknown function signatures: %s", exc)
        return None
    return [TxUnknownFunctionSignature(**row) for row in rows]


def insert_unknown_function_signatures(
    tx: Transaction, unknown_signatures: Iterable[TxUnknownFunctionSignature]
) -> None:
    entries = list(unknown_signatures)
    if not entries:
        raise ValueError("no unknown function signatures to insert")
    sql = (
        tx.engine_query(
            {
                DBEngineType.PGSQL: "INSERT INTO tx_unknown_signatures (bytes, lastcheck) VALUES ",
                DBEngineType.SQLITE: "INSERT OR REPLACE INTO tx_unknown_signatures (bytes, lastcheck) VALUES ",
            }
        )
        + _value_rows(len(entries), 2)
        + tx.engine_query(
            {
                DBEngineType.PGSQL: " ON CONFLICT (bytes) DO UPDATE SET lastcheck = excluded.lastcheck",
                DBEngineType.SQLITE: "",
            }
        )
    )
    args = [value for entry in entries for value in (bytes(entry.bytes), entry.lastcheck)]
    tx.execute(sql, args)


def insert_pending_function_signatures(
    tx: Transaction, pending_signatures: Iterable[TxPendingFunctionSignature]
) -> None:
    entries = list(pending_signatures)
    if not entries:
        raise ValueError("no pending function signatures to insert")
    sql = (
        tx.engine_query(
            {
                DBEngineType.PGSQL: "INSERT INTO tx_pending_signatures (bytes, queuetime) VALUES ",
                DBEngineType.SQLITE: "INSERT OR IGNORE INTO tx_pending_signatures (bytes, queuetime) VALUES ",
            }
        )
        + _value_rows(len(entries), 2)
        + tx.engine_query(
            {
                DBEngineType.PGSQL: " ON CONFLICT (bytes) DO NOTHING",
                DBEngineType.SQLITE: "",
            }
        )
    )
    args = [value for entry in entries for value in (bytes(entry.bytes), entry.queuetime)]
    tx.execute(sql, args)


def get_pending_function_signatures(db: Database, limit: int) -> Optional[list[TxPendingFunctionSignature]]:
    """Up to ``limit`` queued selectors, oldest first; None on a database error."""
    try:
        rows = db.query(
            "SELECT bytes, queuetime FROM tx_pending_signatures ORDER BY queuetime ASC LIMIT $1",
            (limit,),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching unknown function signatures: %s", exc)
        return None
    return [TxPendingFunctionSignature(**row) for row in rows]


def delete_pending_function_signatures(tx: Transaction, sig_bytes: Iterable[bytes]) -> None:
    selectors = [bytes(sig) for sig in sig_bytes]
    if not selectors:
        return
    tx.execute(
        f"DELETE FROM tx_pending_signatures WHERE bytes in ({_in_list(len(selectors))})",
        selectors,
    )