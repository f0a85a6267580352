import pytest

from dora.db.assignments import (
    delete_unfinalized_before,
    get_blob,
    get_latest_blob_assignment,
    get_slot_assignment,
    get_slot_assignments_for_slots,
    get_sync_assignments_for_period,
    get_unfinalized_block,
    get_unfinalized_blocks,
    get_unfinalized_epoch,
    insert_blob,
    insert_blob_assignment,
    insert_slot_assignments,
    insert_sync_assignments,
    insert_unfinalized_block,
    insert_unfinalized_epoch,
)
from dora.db.database import SqliteConfig, open_sqlite
from dora.dbtypes import (
    Blob,
    BlobAssignment,
    Epoch,
    SlotAssignment,
    SyncAssignment,
    UnfinalizedBlock,
)

_SCHEMA = """
CREATE TABLE slot_assignments (slot INTEGER PRIMARY KEY, proposer INTEGER NOT NULL);
CREATE TABLE sync_assignments (
    period INTEGER NOT NULL, "index" INTEGER NOT NULL, validator INTEGER NOT NULL,
    PRIMARY KEY (period, "index")
);
CREATE TABLE unfinalized_blocks (
    root BLOB PRIMARY KEY, slot INTEGER, header_ver INTEGER, header_ssz BLOB,
    block_ver INTEGER, block_ssz BLOB
);
CREATE TABLE unfinalized_epochs (
    epoch INTEGER PRIMARY KEY, validator_count INTEGER, validator_balance INTEGER,
    eligible INTEGER, voted_target INTEGER, voted_head INTEGER, voted_total INTEGER,
    block_count INTEGER, orphaned_count INTEGER, attestation_count INTEGER,
    deposit_count INTEGER, exit_count INTEGER, withdraw_count INTEGER,
    withdraw_amount INTEGER, attester_slashing_count INTEGER,
    proposer_slashing_count INTEGER, bls_change_count INTEGER,
    eth_transaction_count INTEGER, sync_participation REAL
);
CREATE TABLE blobs (commitment BLOB PRIMARY KEY, proof BLOB, size INTEGER, blob BLOB);
CREATE TABLE blob_assignments (
    root BLOB NOT NULL, commitment BLOB NOT NULL, slot INTEGER NOT NULL,
    PRIMARY KEY (root, commitment)
);
"""


@pytest.fixture
def db(tmp_path):
    database = open_sqlite(SqliteConfig(file=str(tmp_path / "explorer.db")))
    database.writer.executescript(_SCHEMA)
    database.writer.commit()
    yield database
    database.close()


@pytest.fixture
def bare_db(tmp_path):
    database = open_sqlite(SqliteConfig(file=str(tmp_path / "empty.db")))
    yield database
    database.close()


def test_slot_assignments_round_trip(db):
    with db.transaction() as tx:
        insert_slot_assignments(tx, [SlotAssignment(5, 11), SlotAssignment(6, 12), SlotAssignment(9, 13)])
    result = get_slot_assignments_for_slots(db, 6, 5)
    assert sorted(result, key=lambda a: a.slot) == [SlotAssignment(5, 11), SlotAssignment(6, 12)]
    assert get_slot_assignment(db, 9) == SlotAssignment(9, 13)
    assert get_slot_assignment(db, 7) is None


def test_slot_assignment_replaces_proposer(db):
    with db.transaction() as tx:
        insert_slot_assignments(tx, [SlotAssignment(5, 11)])
    with db.transaction() as tx:
        insert_slot_assignments(tx, [SlotAssignment(5, 99)])
    assert get_slot_assignment(db, 5) == SlotAssignment(5, 99)


def test_insert_slot_assignments_rejects_empty(db):
    with pytest.raises(ValueError):
        with db.transaction() as tx:
            insert_slot_assignments(tx, [])


def test_sync_assignments_ordered_by_index(db):
    with db.transaction() as tx:
        insert_sync_assignments(
            tx,
            [
                SyncAssignment(period=3, index=2, validator=300),
                SyncAssignment(period=3, index=0, validator=100),
                SyncAssignment(period=3, index=1, validator=200),
                SyncAssignment(period=4, index=0, validator=400),
            ],
        )
    assert get_sync_assignments_for_period(db, 3) == [100, 200, 300]
    assert get_sync_assignments_for_period(db, 4) == [400]
    assert get_sync_assignments_for_period(db, 5) == []


def test_insert_sync_assignments_rejects_empty(db):
    with pytest.raises(ValueError):
        with db.transaction() as tx:
            insert_sync_assignments(tx, [])


def test_read_errors_return_none(bare_db):
    assert get_slot_assignments_for_slots(bare_db, 10, 0) is None
    assert get_sync_assignments_for_period(bare_db, 1) is None
    assert get_unfinalized_blocks(bare_db) is None
    assert get_blob(bare_db, b"\x01", True) is None


def test_unfinalized_block_round_trip(db):
    block = UnfinalizedBlock(
        root=b"\xaa" * 32, slot=40, header_ver=1, header_ssz=b"head", block_ver=2, block_ssz=b"body"
    )
    with db.transaction() as tx:
        insert_unfinalized_block(tx, block)
    assert get_unfinalized_block(db, block.root) == block
    assert get_unfinalized_blocks(db) == [block]
    assert get_unfinalized_block(db, b"\xbb" * 32) is None


def test_unfinalized_block_insert_keeps_first(db):
    first = UnfinalizedBlock(root=b"\x01", slot=1, header_ssz=b"a", block_ssz=b"a")
    second = UnfinalizedBlock(root=b"\x01", slot=2, header_ssz=b"b", block_ssz=b"b")
    with db.transaction() as tx:
        insert_unfinalized_block(tx, first)
        insert_unfinalized_block(tx, second)
    assert get_unfinalized_block(db, b"\x01") == first


def test_unfinalized_epoch_round_trip(db):
    epoch = Epoch(epoch=3, validator_count=100, eligible=64, voted_head=50, block_count=30, sync_participation=0.5)
    with db.transaction() as tx:
        insert_unfinalized_epoch(tx, epoch)
    assert get_unfinalized_epoch(db, 3) == epoch
    assert get_unfinalized_epoch(db, 4) is None


def test_delete_unfinalized_before(db):
    early = UnfinalizedBlock(root=b"\x01", slot=10)
    late = UnfinalizedBlock(root=b"\x02", slot=40)
    with db.transaction() as tx:
        insert_unfinalized_block(tx, early)
        insert_unfinalized_block(tx, late)
        for number in (0, 1, 2):
            insert_unfinalized_epoch(tx, Epoch(epoch=number))
    with db.transaction() as tx:
        delete_unfinalized_before(tx, 40, 32)
    assert get_unfinalized_blocks(db) == [late]
    assert get_unfinalized_epoch(db, 0) is None
    assert get_unfinalized_epoch(db, 1) == Epoch(epoch=1)
    assert get_unfinalized_epoch(db, 2) == Epoch(epoch=2)


def test_delete_unfinalized_before_rejects_bad_epoch_length(db):
    with pytest.raises(ValueError):
        with db.transaction() as tx:
            delete_unfinalized_before(tx, 40, 0)


def test_blob_with_and_without_data(db):
    blob = Blob(commitment=b"\xc0" * 48, proof=b"\xd0" * 48, size=4, blob=b"data")
    with db.transaction() as tx:
        insert_blob(tx, blob)
    assert get_blob(db, blob.commitment, True) == blob
    without = get_blob(db, blob.commitment, False)
    assert without == Blob(commitment=blob.commitment, proof=blob.proof, size=4, blob=None)
    assert get_blob(db, b"\x00", True) is None


def test_latest_blob_assignment(db):
    commitment = b"\xc1" * 48
    with db.transaction() as tx:
        insert_blob_assignment(tx, BlobAssignment(root=b"\x01" * 32, commitment=commitment, slot=5))
        insert_blob_assignment(tx, BlobAssignment(root=b"\x02" * 32, commitment=commitment, slot=9))
    latest = get_latest_blob_assignment(db, commitment)
    assert latest == BlobAssignment(root=b"\x02" * 32, commitment=commitment, slot=9)
    assert get_latest_blob_assignment(db, b"\x00") is None