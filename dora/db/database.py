"""Connection handling and explorer-state and validator-name queries."""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

from ..dbtypes import DBEngineType, ValidatorName

logger = logging.getLogger(__name__)

_DEFAULT_MAX_OPEN_CONNS = 50
_DEFAULT_MAX_IDLE_CONNS = 10
_NUMBERED_PARAM = re.compile(r"\$(\d+)")


def _to_sqlite_params(sql: str) -> str:
    """Rewrite ``$N`` placeholders into SQLite's numbered ``?N`` form."""
    return _NUMBERED_PARAM.sub(r"?\1", sql)


def _pick_query(engine: DBEngineType, query_map: Mapping[DBEngineType, str]) -> str:
    query = query_map.get(engine, "")
    if query:
        return query
    return query_map.get(DBEngineType.ANY, "")


def _value_rows(rows: int, width: int) -> str:
    """Placeholder tuples ``($1, $2), ($3, $4), ...`` for a multi-row insert."""
    return ", ".join(
        "(" + ", ".join(f"${row * width + col + 1}" for col in range(width)) + ")"
        for row in range(rows)
    )


def _in_list(count: int) -> str:
    return ", ".join(f"${i + 1}" for i in range(count))


@dataclass
class SqliteConfig:
    """Location and connection limits of an SQLite database."""

    file: str = ""
    max_open_conns: int = 0
    max_idle_conns: int = 0

    def with_defaults(self) -> "SqliteConfig":
        """Return a copy with unset limits filled in and idle capped by open."""
        max_open = self.max_open_conns or _DEFAULT_MAX_OPEN_CONNS
        max_idle = self.max_idle_conns or _DEFAULT_MAX_IDLE_CONNS
        if max_open < max_idle:
            max_idle = max_open
        return replace(self, max_open_conns=max_open, max_idle_conns=max_idle)


class Transaction:
    """Statements run on the writer connection inside one transaction."""

    def __init__(self, engine: DBEngineType, cursor: sqlite3.Cursor) -> None:
        self.engine = engine
        self._cursor = cursor

    def engine_query(self, query_map: Mapping[DBEngineType, str]) -> str:
        return _pick_query(self.engine, query_map)

    def execute(self, sql: str, args: Sequence[Any] = ()) -> int:
        """Run one statement and return the number of rows it changed."""
        self._cursor.execute(_to_sqlite_params(sql), tuple(args))
        return self._cursor.rowcount


class Database:
    """A writer and a reader connection to the explorer database."""

    def __init__(self, engine: DBEngineType, writer: sqlite3.Connection, reader: sqlite3.Connection) -> None:
        self.engine = engine
        self.writer = writer
        self.reader = reader

    def engine_query(self, query_map: Mapping[DBEngineType, str]) -> str:
        """Pick the query for this engine, falling back to the generic one."""
        return _pick_query(self.engine, query_map)

    def query(self, sql: str, args: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a read query and return its rows as dicts keyed by column name."""
        cursor = self.reader.execute(_to_sqlite_params(sql), tuple(args))
        try:
            columns = [column[0] for column in cursor.description or ()]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def query_one(self, sql: str, args: Sequence[Any] = ()) -> Optional[dict[str, Any]]:
        """Return the first row of a read query, or None if there is none."""
        rows = self.query(sql, args)
        return rows[0] if rows else None

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Commit on a clean exit, roll back if the block raises."""
        cursor = self.writer.cursor()
        try:
            yield Transaction(self.engine, cursor)
        except BaseException:
            self.writer.rollback()
            raise
        else:
            self.writer.commit()
        finally:
            cursor.close()

    def close(self) -> None:
        try:
            self.writer.close()
        except sqlite3.Error as exc:
            logger.error("Error closing writer db connection: %s", exc)
        if self.reader is not self.writer:
            try:
                self.reader.close()
            except sqlite3.Error as exc:
                logger.error("Error closing reader db connection: %s", exc)


def open_sqlite(config: SqliteConfig) -> Database:
    """Open the SQLite database named by ``config`` in WAL mode."""
    config = config.with_defaults()
    logger.info(
        "initializing sqlite connection to %s with %s/%s conn limit",
        config.file,
        config.max_idle_conns,
        config.max_open_conns,
    )
    connection = sqlite3.connect(
        f"file:{config.file}?cache=shared",
        uri=True,
        check_same_thread=False,
        timeout=15,
    )
    try:
        connection.execute("SELECT 1").close()
        connection.execute("PRAGMA journal_mode = WAL").close()
    except sqlite3.Error:
        connection.close()
        raise
    return Database(DBEngineType.SQLITE, connection, connection)


def get_explorer_state(db: Database, key: str) -> Any:
    """Return the JSON value stored under ``key``; KeyError if there is none."""
    row = db.query_one("SELECT key, value FROM explorer_state WHERE key = $1", (key,))
    if row is None:
        raise KeyError(key)
    return json.loads(row["value"])


def set_explorer_state(tx: Transaction, key: str, value: Any) -> None:
    tx.execute(
        tx.engine_query(
            {
                DBEngineType.PGSQL: """
                    INSERT INTO explorer_state (key, value)
                    VALUES ($1, $2)
                    ON CONFLICT (key) DO UPDATE SET
                        value = excluded.value""",
                DBEngineType.SQLITE: """
                    INSERT OR REPLACE INTO explorer_state (key, value)
                    VALUES ($1, $2)""",
            }
        ),
        (key, json.dumps(value, separators=(",", ":"))),
    )


def get_validator_names(db: Database, min_idx: int, max_idx: int) -> Optional[list[ValidatorName]]:
    """Names of validators with an index in ``[min_idx, max_idx]``; None on a database error."""
    try:
        rows = db.query(
            'SELECT "index", "name" FROM validator_names WHERE "index" >= $1 AND "index" <= $2',
            (min_idx, max_idx),
        )
    except sqlite3.Error as exc:
        logger.error("Error while fetching validator names: %s", exc)
        return None
    return [ValidatorName(index=row["index"], name=row["name"]) for row in rows]


def insert_validator_names(tx: Transaction, validator_names: Iterable[ValidatorName]) -> None:
    names = list(validator_names)
    if not names:
        raise ValueError("no validator names to insert")
    sql = (
        tx.engine_query(
            {
                DBEngineType.PGSQL: 'INSERT INTO validator_names ("index", "name") VALUES ',
                DBEngineType.SQLITE: 'INSERT OR REPLACE INTO validator_names ("index", "name") VALUES ',
            }
        )
        + _value_rows(len(names), 2)
        + tx.engine_query(
            {
                DBEngineType.PGSQL: ' ON CONFLICT ("index") DO UPDATE SET name = excluded.name',
                DBEngineType.SQLITE: "",
            }
        )
    )
    args = [value for entry in names for value in (entry.index, entry.name)]
    tx.execute(sql, args)


def delete_validator_names(tx: Transaction, indexes: Iterable[int]) -> None:
    index_list = list(indexes)
    if not index_list:
        return
    tx.execute(
        f'DELETE FROM validator_names WHERE "index" IN ({_in_list(len(index_list))})',
        index_list,
    )


def _has_rows(db: Database, sql: str, value: int) -> bool:
    try:
        row = db.query_one(sql, (value,))
    except sqlite3.Error:
        return False
    return bool(row and row["count"] > 0)


def is_epoch_synchronized(db: Database, epoch: int) -> bool:
    return _has_rows(db, "SELECT COUNT(*) AS count FROM epochs WHERE epoch = $1", epoch)


def is_sync_committee_synchronized(db: Database, period: int) -> bool:
    return _has_rows(db, "SELECT COUNT(*) AS count FROM sync_assignments WHERE period = $1", period)