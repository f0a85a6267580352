# dora

The storage layer of a beacon chain explorer. It provides:

- `dora.dbtypes`: dataclasses for the stored records (blocks, epochs,
  slot and sync assignments, unfinalized and orphaned blocks, blobs,
  validator names, transaction function signatures), the `DBEngineType`
  enum, the `BlockFilter` used to query slots and the `IndexerSyncState`
  with `to_json()` / `from_json()`.
- `dora.db`: SQL access to an SQLite database. Every statement is kept in
  a SQLite and a PostgreSQL form, picked by the database's engine.
- `dora.cache`: a `RedisCache` with typed getters and setters, and a
  `TieredCache` that keeps values in a bounded in-process cache and can
  also keep them in Redis.
- `dora.s3store`: an `S3Store` that uploads and downloads whole objects
  in one bucket.

## Installation

```
pip install .
```

Run the tests with:

```
pip install ".[test]"
pytest
```

## Database

`SqliteConfig` holds the database file and the connection limits.
`SqliteConfig.with_defaults()` returns a copy with the defaults filled in:
50 open and 10 idle connections, and never more idle than open
connections. `open_sqlite(config)` opens the database in WAL mode and
returns a `Database` whose writer and reader are the same connection.

Reads take the database, writes take a transaction. `Database.transaction()`
commits when the block ends cleanly and rolls back if it raises:

```python
from dora.db.database import (
    SqliteConfig,
    get_validator_names,
    insert_validator_names,
    is_epoch_synchronized,
    open_sqlite,
)
from dora.dbtypes import ValidatorName

db = open_sqlite(SqliteConfig(file="explorer.db"))

with db.transaction() as tx:
    insert_validator_names(tx, [ValidatorName(index=1, name="alice")])

names = get_validator_names(db, 0, 100)
synced = is_epoch_synchronized(db, 42)
db.close()
```

Queries use `$1, $2, ...` placeholders. `Database.query` returns rows as
dicts keyed by column name, `Database.query_one` the first row or `None`,
and `Transaction.execute` the number of changed rows.
`engine_query` picks the statement written for the current engine from a
mapping of `DBEngineType` to SQL, falling back to the entry for
`DBEngineType.ANY`.

The other queries are grouped by module:

- `dora.db.database`: explorer state (`get_explorer_state`, which raises
  `KeyError` for a missing key, and `set_explorer_state`, both JSON),
  validator names, `is_epoch_synchronized`,
  `is_sync_committee_synchronized`.
- `dora.db.blocks`: `insert_block`, `insert_epoch`,
  `insert_orphaned_block`, `get_orphaned_block`, `get_epochs`,
  `get_blocks`, `get_blocks_for_slots`, `get_blocks_by_parent_root`,
  `get_block_by_root`, `get_filtered_blocks`, `get_block_orphaned_refs`,
  `get_highest_root_before_slot`.
- `dora.db.assignments`: slot and sync committee assignments, unfinalized
  blocks and epochs (`delete_unfinalized_before` takes the number of slots
  per epoch), blobs and blob assignments.
- `dora.db.signatures`: known, unknown and pending transaction function
  signatures.

Read functions log a database error and return `None`; single-row lookups
also return `None` when nothing matches. Multi-row inserts raise
`ValueError` when given no rows.

## Caching

```python
from dora.cache.tiered_cache import CacheMiss, new_tiered_cache

cache = new_tiered_cache(100, "", "")   # 100 MB local cache, no Redis
cache.set("head", {"slot": 123}, 60)

try:
    value = cache.get("head")
except CacheMiss:
    value = None
```

Values are stored as JSON. Expirations are seconds or a `timedelta`; zero
means no expiry. The local cache drops its oldest entries when full, and
does not keep entries larger than about a thousandth of its size.

Give a Redis address (`host:port`) and a key prefix to `new_tiered_cache`
to share values between processes; values missing from the local cache are
then fetched from Redis and kept locally until they expire.

`RedisCache` (built by `init_redis_cache(address, key_prefix)`, which pings
the server) offers `set_string`/`get_string`, `set_uint64`/`get_uint64`,
`set_bool`/`get_bool`, `set_bytes`/`get_bytes` and JSON `set`/`get`. A
missing key raises `KeyError`; an entry that `get` cannot decode is
deleted and the error raised.

## Object storage

```python
from dora.s3store import S3Error, S3Store

store = S3Store(access_key="placeholder", secret_key="secret",
                region="eu-central-1", bucket="my-bucket")
store.upload("blobs/abc", b"payload")
data = store.download("blobs/abc")
```

Requests are signed with AWS Signature Version 4 and time out after 30
seconds. Failed transfers raise `S3Error`.

## What this package does not do

- It has no command, web server or pages; it is a library only.
- It does not create or migrate the database tables. The tables the
  queries use must already exist.
- It opens SQLite databases only. The PostgreSQL forms of the statements
  are chosen only when a `Database` is built with `DBEngineType.PGSQL`
  over a connection you supply; no PostgreSQL connection is opened here.