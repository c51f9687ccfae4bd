"""Tests for the log file store and the trust anchor store"""
import os

import pytest

from sensorchain.ledger.anchor import AnchorState, AnchorStore
from sensorchain.ledger.errors import StorageError
from sensorchain.ledger.store import LogStore
from sensorchain.utils.chain import ZERO_HASH


def test_missing_file_reads_empty(tmp_path):
    """Test a log that was never created reads as no lines"""
    store = LogStore(tmp_path / "missing.csv", fsync=False)
    assert not store.exists()
    assert store.read_lines() == []
    assert store.read_text() == ""


def test_append_preserves_order(tmp_path):
    """Test appended lines read back in order without terminators"""
    store = LogStore(tmp_path / "log.csv", fsync=False)
    for line in ("header", "one", "two"):
        store.append_line(line)
    assert store.read_lines() == ["header", "one", "two"]
    assert store.read_text() == "header\none\ntwo\n"


def test_append_with_fsync(tmp_path):
    """Test the durable path writes the same bytes"""
    store = LogStore(tmp_path / "nested" / "log.csv", fsync=True)
    store.append_line("header")
    assert store.read_lines() == ["header"]


def test_failed_append_leaves_file_untouched(tmp_path, monkeypatch):
    """Test a write failure is rolled back and surfaces as StorageError"""
    store = LogStore(tmp_path / "log.csv", fsync=False)
    store.append_line("header")
    store.append_line("one")
    before = store.read_text()

    real_write = os.write

    def partial_write(fd, data):
        real_write(fd, data[:5])
        raise OSError(28, "No space left on device")

    with monkeypatch.context() as m:
        m.setattr("sensorchain.ledger.store.os.write", partial_write)
        with pytest.raises(StorageError):
            store.append_line("two-that-does-not-fit")

    assert store.read_text() == before


def test_rewrite_replaces_content(tmp_path):
    """Test rewrite swaps in the new content and leaves no temp files"""
    store = LogStore(tmp_path / "log.csv", fsync=True)
    store.append_line("header")
    store.append_line("one")

    store.rewrite(["header"])

    assert store.read_lines() == ["header"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["log.csv"]


def test_read_failure_is_storage_error(tmp_path):
    """Test an unreadable path is reported as StorageError"""
    directory = tmp_path / "log.csv"
    directory.mkdir()
    with pytest.raises(StorageError):
        LogStore(directory).read_lines()


def test_anchor_defaults_to_zero(session_factory):
    """Test a never-set anchor reads as the genesis value"""
    anchor = AnchorStore(session_factory)
    assert anchor.get() == ZERO_HASH
    assert anchor.state() == AnchorState(value=ZERO_HASH, pending=None)


def test_anchor_set_is_durable(session_factory):
    """Test a set value is seen by a second store on the same database"""
    AnchorStore(session_factory).set("a" * 64)
    assert AnchorStore(session_factory).get() == "a" * 64


def test_anchor_pending_marker(session_factory):
    """Test begin records a pending commit and set clears it"""
    anchor = AnchorStore(session_factory)
    anchor.set("a" * 64)

    anchor.begin("b" * 64)
    assert anchor.state() == AnchorState(value="a" * 64, pending="b" * 64)

    anchor.set("b" * 64)
    assert anchor.state() == AnchorState(value="b" * 64, pending=None)


def test_anchor_names_are_independent(session_factory):
    """Test two anchor cells in one database do not interfere"""
    first = AnchorStore(session_factory, name="first")
    second = AnchorStore(session_factory, name="second")
    first.set("a" * 64)
    assert second.get() == ZERO_HASH
