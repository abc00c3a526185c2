from typing import Iterable, Optional
import structlog

from errors import LedgerError
from ledger import Ledger
from models import ProcessingSummary, TransactionRecord
from records import RawRow, parse_record

logger = structlog.get_logger()


class TransactionProcessor:
    def __init__(self, ledger: Ledger, fail_fast: bool = False):
        self.ledger = ledger
        self.fail_fast = fail_fast

    def process(self, rows: Iterable[RawRow]) -> ProcessingSummary:
        """Parse and apply every row in order, logging rejected events."""
        summary = ProcessingSummary()
        logger.info("Processing transactions", fail_fast=self.fail_fast)

        for row in rows:
            summary.rows_read += 1
            record = None
            try:
                record = parse_record(row)
                self.ledger.apply(record)
            except LedgerError as e:
                self._reject(summary, e, line=row.line, record=record)
                if self.fail_fast:
                    raise ProcessingAborted(e, line=row.line) from e
            else:
                summary.applied += 1

        self._log_summary(summary)
        return summary

    def process_records(self, records: Iterable[TransactionRecord]) -> ProcessingSummary:
        """Apply already-parsed records in order."""
        summary = ProcessingSummary()

        for record in records:
            summary.rows_read += 1
            try:
                self.ledger.apply(record)
            except LedgerError as e:
                self._reject(summary, e, record=record)
                if self.fail_fast:
                    raise ProcessingAborted(e) from e
            else:
                summary.applied += 1

        self._log_summary(summary)
        return summary

    def _reject(
        self,
        summary: ProcessingSummary,
        error: LedgerError,
        line: Optional[int] = None,
        record: Optional[TransactionRecord] = None,
    ) -> None:
        summary.record_failure(error.error_code)
        logger.warning(
            "Transaction rejected",
            line=line,
            type=record.type.value if record else None,
            client=record.client if record else None,
            tx=record.tx if record else None,
            error_code=error.error_code,
            detail=error.message,
        )

    def _log_summary(self, summary: ProcessingSummary) -> None:
        logger.info(
            "Transactions processed",
            rows_read=summary.rows_read,
            applied=summary.applied,
            failed=summary.failed,
            failures_by_code=summary.failures_by_code,
            accounts=len(self.ledger.account_repo),
        )


class ProcessingAborted(Exception):
    """Raised when fail-fast processing stops at a rejected event."""

    def __init__(self, error: LedgerError, line: Optional[int] = None):
        self.error = error
        self.line = line
        location = f"line {line}: " if line is not None else ""
        super().__init__(f"{location}{error.message}")
