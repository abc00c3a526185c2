import io
import pytest
from decimal import Decimal
from unittest.mock import patch

from ledger import Ledger
from models import TransactionRecord
from processor import ProcessingAborted, TransactionProcessor
from records import read_rows


def rows_from(text: str):
    return read_rows(io.StringIO(text))


@pytest.fixture
def ledger():
    return Ledger()


class TestProcess:
    """Test the replay loop over CSV rows."""

    def test_applies_rows_in_order(self, ledger):
        """Test a withdrawal only succeeds after the deposit before it."""
        summary = TransactionProcessor(ledger).process(rows_from(
            "type,client,tx,amount\n"
            "deposit,1,1,10\n"
            "withdrawal,1,2,10\n"
        ))

        assert summary.rows_read == 2
        assert summary.applied == 2
        assert summary.failed == 0
        assert ledger.account(1).available == 0

    def test_failures_do_not_stop_the_run(self, ledger):
        """Test every kind of per-event failure is counted and skipped."""
        summary = TransactionProcessor(ledger).process(rows_from(
            "type,client,tx,amount\n"
            "deposit,1,1,100\n"
            "deposit,1,1,50\n"
            "withdrawal,1,2,500\n"
            "deposit,1,3,1.00001\n"
            "bogus,1,4,1\n"
            "deposit,2,5,7\n"
        ))

        assert summary.rows_read == 6
        assert summary.applied == 2
        assert summary.failed == 4
        assert summary.failures_by_code == {
            "TX_EXISTS": 1,
            "INSUFFICIENT_FUNDS": 1,
            "INVALID_DATA": 2,
        }
        assert ledger.account(1).available == Decimal(100)
        assert ledger.account(2).available == Decimal(7)

    def test_unsplittable_row_is_skipped(self, ledger):
        """Test a row the csv module cannot split fails alone and later rows still apply."""
        summary = TransactionProcessor(ledger).process(rows_from(
            "type,client,tx,amount\n"
            "deposit,1,1," + "9" * 200000 + "\n"
            "deposit,1,2,5\n"
        ))

        assert summary.applied == 1
        assert summary.failures_by_code == {"INVALID_DATA": 1}
        assert ledger.account(1).available == Decimal(5)

    def test_ignored_disputes_count_as_applied(self, ledger):
        """Test swallowed reference events are not failures."""
        summary = TransactionProcessor(ledger).process(rows_from(
            "type,client,tx,amount\n"
            "dispute,1,99,\n"
            "resolve,1,99\n"
        ))

        assert summary.applied == 2
        assert summary.failed == 0

    def test_fail_fast_stops_at_first_failure(self, ledger):
        """Test fail-fast aborts with the offending line."""
        processor = TransactionProcessor(ledger, fail_fast=True)

        with pytest.raises(ProcessingAborted) as exc_info:
            processor.process(rows_from(
                "type,client,tx,amount\n"
                "deposit,1,1,100\n"
                "withdrawal,1,2,500\n"
                "deposit,1,3,1\n"
            ))

        assert exc_info.value.line == 3
        assert exc_info.value.error.error_code == "INSUFFICIENT_FUNDS"
        assert ledger.transaction_status(3) is None

    @patch('processor.logger')
    def test_logging_on_rejection(self, mock_logger, ledger):
        """Test rejected events are logged as warnings."""
        TransactionProcessor(ledger).process(rows_from(
            "type,client,tx,amount\n"
            "withdrawal,1,1,5\n"
        ))

        mock_logger.warning.assert_called_once()
        _, kwargs = mock_logger.warning.call_args
        assert kwargs["error_code"] == "INSUFFICIENT_FUNDS"
        assert kwargs["line"] == 2
        assert kwargs["client"] == 1
        assert kwargs["tx"] == 1


class TestProcessRecords:
    """Test replaying already-parsed records."""

    def test_process_records(self, ledger):
        """Test parsed records go through the same failure policy."""
        records = [
            TransactionRecord(type="deposit", client=1, tx=1, amount=Decimal("4.321")),
            TransactionRecord(type="withdrawal", client=1, tx=2, amount=Decimal("1.001")),
            TransactionRecord(type="withdrawal", client=1, tx=3, amount=Decimal("10")),
        ]

        summary = TransactionProcessor(ledger).process_records(records)

        assert summary.applied == 2
        assert summary.failures_by_code == {"INSUFFICIENT_FUNDS": 1}
        assert ledger.account(1).available == Decimal("3.3200")

    def test_process_records_fail_fast(self, ledger):
        """Test fail-fast also applies to parsed records."""
        records = [TransactionRecord(type="withdrawal", client=1, tx=1, amount=Decimal("1"))]

        with pytest.raises(ProcessingAborted) as exc_info:
            TransactionProcessor(ledger, fail_fast=True).process_records(records)

        assert exc_info.value.line is None
