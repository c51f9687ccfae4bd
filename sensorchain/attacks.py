"""Demonstration attacks against the sensor log file.

Each function edits the CSV file directly, the way an attacker with access
to the storage medium would, to show that verify() detects it. Nothing here
goes through ChainLedger or LogStore, and none of it touches the trust
anchor. Only reachable from the /attacks endpoints (when ATTACKS_ENABLED is
set) and from the console.
"""
import secrets
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from sensorchain.utils.chain import ZERO_HASH, commit
from sensorchain.utils.logger import logger

HEADER_LINE = "datetime,value,prevHash,entryHash"
FIELD_INDEX = {"timestamp": 0, "value": 1, "prev_hash": 2, "entry_hash": 3}


class AttackError(ValueError):
    """The requested attack cannot be applied to the current file"""


def _read(path: Path) -> List[str]:
    if not path.exists():
        raise AttackError(f"{path} does not exist")
    return path.read_text(encoding="utf-8").splitlines()


def _write(path: Path, lines: Iterable[str]) -> None:
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")


def _record_index(lines: List[str], position: int) -> int:
    """Index into ``lines`` of the record at 1-based ``position``"""
    seen = 0
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        if seen == position:
            return index
        seen += 1
    raise AttackError(f"no record at position {position}")


def _log(attack: str, path: Path, **fields) -> None:
    logger.warning(f"Attack applied: {attack}", extra={"action": attack, "path": str(path), **fields})


def edit_field(path: Union[str, Path], position: int, field: str, new_value: str) -> str:
    """Overwrite one field of one record in place, without recomputing hashes"""
    path = Path(path)
    if field not in FIELD_INDEX:
        raise AttackError(f"unknown field {field!r}; expected one of {sorted(FIELD_INDEX)}")
    if position < 1:
        raise AttackError("position must be >= 1")
    lines = _read(path)
    index = _record_index(lines, position)
    parts = lines[index].split(",")
    if len(parts) <= FIELD_INDEX[field]:
        raise AttackError(f"record {position} has no {field} field")
    parts[FIELD_INDEX[field]] = new_value
    lines[index] = ",".join(parts)
    _write(path, lines)
    _log("edit_field", path, position=position, reason=field)
    return lines[index]


def substitute_record(path: Union[str, Path], position: int, row: str) -> str:
    """Replace one record with an arbitrary row"""
    path = Path(path)
    if position < 1:
        raise AttackError("position must be >= 1")
    lines = _read(path)
    index = _record_index(lines, position)
    lines[index] = row
    _write(path, lines)
    _log("substitute_record", path, position=position)
    return row


def append_unlinked(path: Union[str, Path], timestamp: str, value: str) -> str:
    """Append a row whose hashes are random, so it links to nothing"""
    path = Path(path)
    row = f"{timestamp},{value},{secrets.token_hex(32)},{secrets.token_hex(32)}"
    with open(path, "a", encoding="utf-8") as f:
        f.write(row + "\n")
    _log("append_unlinked", path)
    return row


def append_without_hashes(path: Union[str, Path], timestamp: str, value: str) -> str:
    """Append a plain ``timestamp,value`` row with no hash fields"""
    path = Path(path)
    row = f"{timestamp},{value}"
    with open(path, "a", encoding="utf-8") as f:
        f.write(row + "\n")
    _log("append_without_hashes", path)
    return row


def delete_record(path: Union[str, Path], position: int) -> str:
    """Remove one record, keeping every other line as is"""
    path = Path(path)
    if position < 1:
        raise AttackError("position must be >= 1")
    lines = _read(path)
    index = _record_index(lines, position)
    removed = lines.pop(index)
    _write(path, lines)
    _log("delete_record", path, position=position)
    return removed


def swap_records(path: Union[str, Path], first: int, second: int) -> Tuple[str, str]:
    """Exchange two records"""
    path = Path(path)
    if first < 1 or second < 1:
        raise AttackError("positions must be >= 1")
    lines = _read(path)
    i, j = _record_index(lines, first), _record_index(lines, second)
    lines[i], lines[j] = lines[j], lines[i]
    _write(path, lines)
    _log("swap_records", path, position=first)
    return lines[i], lines[j]


def forge_chain(readings: Iterable[Tuple[str, str]]) -> List[str]:
    """Build a complete, internally consistent log (header included) for ``readings``"""
    lines = [HEADER_LINE]
    prev_hash = ZERO_HASH
    for timestamp, value in readings:
        entry_hash = commit(prev_hash, timestamp, value)
        lines.append(f"{timestamp},{value},{prev_hash},{entry_hash}")
        prev_hash = entry_hash
    return lines


def overwrite_store(path: Union[str, Path], readings: Iterable[Tuple[str, str]]) -> List[str]:
    """Replace the whole file with a forged, self-consistent chain.

    Every link in the result checks out; only the trust anchor gives it away.
    """
    path = Path(path)
    lines = forge_chain(readings)
    _write(path, lines)
    _log("overwrite_store", path, length=len(lines) - 1)
    return lines


def replace_with_text(path: Union[str, Path], content: str) -> None:
    """Overwrite the whole file with arbitrary text"""
    path = Path(path)
    path.write_text(content, encoding="utf-8")
    _log("replace_with_text", path)
