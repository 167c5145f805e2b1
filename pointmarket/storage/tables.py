"""CSV-backed table store with atomic whole-table writes.

Each table lives in ``<data_dir>/<table_id>.csv`` with a header row followed by
one row per record. Records are flat ``dict[str, str]`` mappings; the store has
no knowledge of what the columns mean.

Writes never modify a table in place: the new content is written to a temp file
in the same directory and renamed over the target, so a concurrent reader sees
either the old file or the new one. ``commit`` extends this to several tables by
staging every temp file before renaming any of them.
"""

import csv
import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from pointmarket.exceptions import StorageError

logger = logging.getLogger(__name__)

Record = dict[str, str]

SEPARATOR = ","
QUOTE = '"'
_NEEDS_QUOTING = (SEPARATOR, QUOTE, "\n", "\r")


# ============================================================================
# Encoding
# ============================================================================


def encode_value(value: object) -> str:
    """Encode one field, quote-wrapping it when it holds a separator, quote or newline."""
    text = "" if value is None else str(value)
    if any(ch in text for ch in _NEEDS_QUOTING):
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text


def encode_row(values: Iterable[object]) -> str:
    """Encode a sequence of fields as one CSV line (without terminator)."""
    return SEPARATOR.join(encode_value(v) for v in values)


def encode_table(header: Sequence[str], records: Iterable[Mapping[str, str]]) -> str:
    """Render a full table: header line, then each record in header order."""
    lines = [encode_row(header)]
    for record in records:
        lines.append(encode_row(record.get(key, "") for key in header))
    return "\n".join(lines) + "\n"


def decode_table(lines: Iterable[str]) -> list[Record]:
    """Parse CSV lines into records keyed by the header row found in the input.

    Blank rows are dropped. Rows shorter than the header yield empty strings for
    the missing fields, so a table written before a column was added still loads.
    """
    rows = csv.reader(lines, delimiter=SEPARATOR, quotechar=QUOTE, strict=True)
    header: list[str] | None = None
    records: list[Record] = []
    for row in rows:
        if header is None:
            if not any(row):
                continue
            header = row
            continue
        if not any(cell != "" for cell in row):
            continue
        records.append(
            {key: (row[i] if i < len(row) else "") for i, key in enumerate(header)}
        )
    return records


# ============================================================================
# Store
# ============================================================================


@dataclass(frozen=True)
class TableWrite:
    """Full replacement content for one table."""

    table_id: str
    header: tuple[str, ...]
    records: list[Record] = field(default_factory=list)


class TableStore:
    """Loads and saves record collections as CSV files under ``data_dir``."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, table_id: str) -> Path:
        return self.data_dir / f"{table_id}.csv"

    def exists(self, table_id: str) -> bool:
        return self.path_for(table_id).exists()

    def load(self, table_id: str) -> list[Record]:
        """Load every record of a table. A missing table is empty."""
        path = self.path_for(table_id)
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                return decode_table(f)
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            logger.error(f"Failed to load table {table_id}: {e}")
            raise StorageError(f"Failed to read table '{table_id}'") from e

    def save(
        self,
        table_id: str,
        header: Sequence[str],
        records: Iterable[Mapping[str, str]],
    ) -> None:
        """Atomically replace a table's content."""
        self.commit([TableWrite(table_id, tuple(header), [dict(r) for r in records])])

    def commit(self, writes: Sequence[TableWrite]) -> None:
        """Persist several tables as one unit.

        Every table is staged to a temp file first. If any staging step fails the
        temp files are removed and no table is touched. Renames only start once
        all content is on disk. A rename failing part-way is reported along with
        the tables already replaced.
        """
        if not writes:
            return

        self.data_dir.mkdir(parents=True, exist_ok=True)
        staged: list[tuple[Path, Path]] = []
        try:
            for write in writes:
                staged.append((self._stage(write), self.path_for(write.table_id)))
        except (OSError, ValueError) as e:
            for temp_path, _ in staged:
                temp_path.unlink(missing_ok=True)
            logger.error(f"Failed to stage tables: {e}")
            raise StorageError("Failed to write tables; no changes were applied") from e

        replaced: list[str] = []
        try:
            for temp_path, target in staged:
                shutil.move(str(temp_path), str(target))
                replaced.append(target.stem)
        except OSError as e:
            for temp_path, _ in staged:
                temp_path.unlink(missing_ok=True)
            logger.error(
                f"Failed to replace tables: {e} "
                f"(already replaced: {', '.join(replaced) or 'none'})"
            )
            if replaced:
                raise StorageError(
                    f"Failed to replace table files; tables already replaced: "
                    f"{', '.join(replaced)}"
                ) from e
            raise StorageError("Failed to replace table files; no changes were applied") from e

        logger.debug(f"Committed tables: {', '.join(w.table_id for w in writes)}")

    def initialize(
        self,
        table_id: str,
        header: Sequence[str],
        seed_records: Iterable[Mapping[str, str]] = (),
    ) -> bool:
        """Create a table holding only ``header`` and ``seed_records`` if it is missing.

        Returns True when the table was created.
        """
        if self.exists(table_id):
            return False
        self.save(table_id, header, seed_records)
        logger.info(f"Initialized table {table_id} at {self.path_for(table_id)}")
        return True

    def _stage(self, write: TableWrite) -> Path:
        content = encode_table(write.header, write.records)
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self.data_dir,
                delete=False,
                prefix=f".{write.table_id}.",
                suffix=".tmp",
                encoding="utf-8",
                newline="",
            ) as temp_file:
                temp_path = Path(temp_file.name)
                temp_file.write(content)
        except Exception:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise
        return temp_path
