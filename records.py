import csv
from dataclasses import dataclass, field
from typing import IO, Dict, Iterable, Iterator, List, Optional

from pydantic import ValidationError

from errors import InvalidData
from models import AMOUNT_SCALE, AccountSnapshot, TransactionRecord

REQUIRED_FIELDS = ("type", "client", "tx")
OUTPUT_FIELDS = ("client", "available", "held", "total", "locked")


@dataclass(frozen=True)
class RawRow:
    line: int
    fields: Dict[str, Optional[str]]
    extra: List[str] = field(default_factory=list)
    error: Optional[str] = None


def read_rows(stream: IO[str]) -> Iterator[RawRow]:
    """Yield the data rows of a transactions CSV.

    Rows may omit trailing columns (disputes usually have no amount);
    blank lines are skipped. Rows the csv module cannot split carry
    ``error`` instead of fields. Raises ``InvalidData`` if the header lacks a
    required column.
    """
    reader = csv.reader(stream, skipinitialspace=True)
    try:
        header = next(reader, None)
    except csv.Error as e:
        raise InvalidData(f"unreadable header: {e}", line=reader.line_num) from e
    if header is None:
        return

    columns = [name.strip().lower() for name in header]
    missing = [name for name in REQUIRED_FIELDS if name not in columns]
    if missing:
        raise InvalidData(f"header is missing column(s): {', '.join(missing)}", line=reader.line_num)

    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            # The reader resumes at the next line; only this row is lost.
            yield RawRow(line=reader.line_num, fields={}, error=str(e))
            continue

        if not any(cell.strip() for cell in row):
            continue
        values = [cell.strip() for cell in row]
        yield RawRow(
            line=reader.line_num,
            fields=dict(zip(columns, values)),
            extra=[value for value in values[len(columns):] if value],
        )


def parse_record(row: RawRow) -> TransactionRecord:
    if row.error:
        raise InvalidData(f"line {row.line}: {row.error}", line=row.line)
    if row.extra:
        raise InvalidData(f"line {row.line}: unexpected extra fields {row.extra}", line=row.line)

    try:
        return TransactionRecord.model_validate(row.fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'record'}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidData(f"line {row.line}: {problems}", line=row.line) from e


def write_snapshots(
    snapshots: Iterable[AccountSnapshot],
    stream: IO[str],
    scale: int = AMOUNT_SCALE,
) -> int:
    """Write snapshots as CSV and return the number of accounts written."""
    writer = csv.DictWriter(stream, fieldnames=OUTPUT_FIELDS, lineterminator="\n")
    writer.writeheader()
    count = 0
    for snapshot in snapshots:
        writer.writerow(snapshot.formatted(scale))
        count += 1
    return count
