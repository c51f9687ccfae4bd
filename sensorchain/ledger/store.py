"""Line-oriented append-only file store for the sensor log"""
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from sensorchain.ledger.errors import StorageError
from sensorchain.utils.logger import logger


def _fsync_dir(path: Path) -> None:
    """fsync the directory holding ``path`` so a rename/create is durable"""
    try:
        fd = os.open(str(path.parent), os.O_RDONLY)
    except OSError:
        return  # not supported on this platform (e.g. Windows)
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


class LogStore:
    """Plain-text log file: read all lines, append one line, rewrite on reset.

    ``append_line`` is all-or-nothing: the row is written with a single
    ``write`` call and, if anything fails, the file is truncated back to its
    previous size so the committed tail is left untouched.
    """

    def __init__(self, path: Union[str, Path], fsync: bool = True):
        self.path = Path(path)
        self.fsync = fsync

    def exists(self) -> bool:
        return self.path.exists()

    def stat_key(self) -> Optional[Tuple[int, int, int]]:
        """``(inode, size, mtime_ns)`` of the file, None when missing; used to notice outside writes"""
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"cannot stat {self.path}: {exc}") from exc
        return st.st_ino, st.st_size, st.st_mtime_ns

    def read_lines(self) -> List[str]:
        """Return every line of the file in order, without line terminators.

        A missing file reads as empty.
        """
        try:
            with open(self.path, "r", encoding="utf-8", newline="") as f:
                return f.read().splitlines()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError(f"cannot read {self.path}: {exc}") from exc

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as exc:
            raise StorageError(f"cannot read {self.path}: {exc}") from exc

    def append_line(self, line: str) -> None:
        """Append one line atomically with respect to the committed tail."""
        data = (line + "\n").encode("utf-8")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.path), os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        except OSError as exc:
            raise StorageError(f"cannot open {self.path} for append: {exc}") from exc

        try:
            size_before = os.fstat(fd).st_size
            try:
                written = os.write(fd, data)
                if written != len(data):
                    raise OSError(f"short write: {written} of {len(data)} bytes")
                if self.fsync:
                    os.fsync(fd)
            except OSError as exc:
                try:
                    os.ftruncate(fd, size_before)
                except OSError:
                    logger.error(
                        "Failed to roll back partial append",
                        extra={"path": str(self.path), "length": size_before},
                        exc_info=True,
                    )
                raise StorageError(f"append to {self.path} failed: {exc}") from exc
        finally:
            os.close(fd)

    def rewrite(self, lines: Iterable[str]) -> None:
        """Replace the whole file (temp file + rename). Used by reset only."""
        content = "".join(f"{line}\n" for line in lines)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                if self.fsync:
                    os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise StorageError(f"cannot rewrite {self.path}: {exc}") from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)

        if self.fsync:
            _fsync_dir(self.path)
