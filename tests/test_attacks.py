"""Tests that every demonstration attack is detected by verification"""
import pytest

from sensorchain import attacks
from sensorchain.ledger.verifier import HEADER_POSITION, Tampered, TamperReason, Verified


@pytest.fixture
def three_records(ledger):
    return [
        ledger.append("2024-01-01 00:00:00", "20.0"),
        ledger.append("2024-01-01 00:00:05", "20.5"),
        ledger.append("2024-01-01 00:00:10", "21.0"),
    ]


def assert_tampered(ledger, position, reason):
    result = ledger.verify()
    assert isinstance(result, Tampered), result
    assert result.position == position
    assert result.reason == reason
    assert not result.valid


def test_edit_value_scenario(ledger, two_records, log_path):
    """Test changing record 1's value to 99.9 is a hash mismatch at 1"""
    line = attacks.edit_field(log_path, 1, "value", "99.9")
    assert ",99.9," in line
    assert_tampered(ledger, 1, TamperReason.HASH_MISMATCH)


@pytest.mark.parametrize(
    "field, new_value, reason",
    [
        ("timestamp", "1999-12-31 23:59:59", TamperReason.HASH_MISMATCH),
        ("prev_hash", "f" * 64, TamperReason.LINK_BROKEN),
        ("entry_hash", "f" * 64, TamperReason.HASH_MISMATCH),
        ("entry_hash", "short", TamperReason.MALFORMED_ROW),
    ],
)
def test_edit_other_fields(ledger, three_records, log_path, field, new_value, reason):
    """Test editing any field of a middle record is located at that record"""
    attacks.edit_field(log_path, 2, field, new_value)
    assert_tampered(ledger, 2, reason)


def test_substitute_record(ledger, three_records, log_path):
    """Test replacing a record with an arbitrary row is malformed"""
    attacks.substitute_record(log_path, 2, "tampered,row")
    assert_tampered(ledger, 2, TamperReason.MALFORMED_ROW)


def test_append_unlinked(ledger, two_records, log_path):
    """Test a row with random hashes does not link to the tip"""
    attacks.append_unlinked(log_path, "2024-01-01 00:00:10", "30.0")
    assert_tampered(ledger, 3, TamperReason.LINK_BROKEN)


def test_append_without_hashes(ledger, two_records, log_path):
    """Test a bare timestamp,value row is malformed"""
    row = attacks.append_without_hashes(log_path, "2024-01-01 00:00:10", "30.0")
    assert row == "2024-01-01 00:00:10,30.0"
    assert_tampered(ledger, 3, TamperReason.MALFORMED_ROW)


def test_delete_first_record(ledger, three_records, log_path):
    """Test deleting a record breaks the link of its successor"""
    attacks.delete_record(log_path, 1)
    assert_tampered(ledger, 1, TamperReason.LINK_BROKEN)


def test_delete_last_record(ledger, three_records, log_path):
    """Test deleting the tail is caught by the trust anchor"""
    attacks.delete_record(log_path, 3)
    assert_tampered(ledger, 3, TamperReason.ANCHOR_MISMATCH)


def test_swap_records(ledger, three_records, log_path):
    """Test reordering records breaks the chain at the first moved record"""
    attacks.swap_records(log_path, 1, 2)
    assert_tampered(ledger, 1, TamperReason.LINK_BROKEN)


def test_overwrite_with_forged_chain(ledger, three_records, log_path):
    """Test a self-consistent forged chain is caught only by the anchor"""
    lines = attacks.overwrite_store(log_path, [
        ("2024-01-01 00:00:00", "0.0"),
        ("2024-01-01 00:00:05", "0.0"),
        ("2024-01-01 00:00:10", "0.0"),
    ])
    assert len(lines) == 4
    assert_tampered(ledger, 4, TamperReason.ANCHOR_MISMATCH)


def test_forge_chain_is_internally_consistent(log_path, ledger):
    """Test forged content would verify if it were anchored"""
    lines = attacks.forge_chain([("2024-01-01 00:00:00", "0.0")])
    attacks.overwrite_store(log_path, [("2024-01-01 00:00:00", "0.0")])
    ledger.anchor.set(lines[-1].split(",")[3])
    assert isinstance(ledger.verify(), Verified)


def test_replace_with_text(ledger, two_records, log_path):
    """Test arbitrary replacement text loses the header"""
    attacks.replace_with_text(log_path, "hello\nworld\n")
    assert_tampered(ledger, HEADER_POSITION, TamperReason.MALFORMED_ROW)


def test_attacks_do_not_touch_anchor(ledger, two_records, log_path):
    """Test attacks edit the file only"""
    anchor = ledger.anchor.state()
    attacks.edit_field(log_path, 1, "value", "99.9")
    attacks.append_unlinked(log_path, "2024-01-01 00:00:10", "30.0")
    assert ledger.anchor.state() == anchor


@pytest.mark.parametrize(
    "call",
    [
        lambda p: attacks.edit_field(p, 1, "colour", "red"),
        lambda p: attacks.edit_field(p, 0, "value", "1"),
        lambda p: attacks.edit_field(p, 9, "value", "1"),
        lambda p: attacks.delete_record(p, 9),
        lambda p: attacks.swap_records(p, 1, 9),
        lambda p: attacks.substitute_record(p, 0, "x"),
    ],
)
def test_invalid_attack_parameters(ledger, two_records, log_path, call):
    """Test impossible attacks raise AttackError and leave the file alone"""
    before = log_path.read_text()
    with pytest.raises(attacks.AttackError):
        call(log_path)
    assert log_path.read_text() == before


def test_attack_on_missing_file(tmp_path):
    """Test attacks need an existing log"""
    with pytest.raises(attacks.AttackError):
        attacks.delete_record(tmp_path / "nope.csv", 1)


def test_reset_after_attack_restores_validity(ledger, two_records, log_path):
    """Test reset is the way out of a tampered chain"""
    attacks.swap_records(log_path, 1, 2)
    ledger.reset(reason="tampered")
    assert ledger.verify() == Verified(length=0)
