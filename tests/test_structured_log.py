"""Tests for structured JSON event logger."""

import io
import json
from unittest import mock

import pytest

from cli.structured_log import StructuredEventLogger


@pytest.fixture
def buf() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(buf: io.StringIO) -> StructuredEventLogger:
    return StructuredEventLogger("fills.csv", enabled=True, stream=buf)


class TestEmit:
    """Basic event emission and format."""

    def test_import_start_json(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.import_start(fills=12, accounts=2)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "import_start"
        assert record["source"] == "fills.csv"
        assert record["fills"] == 12
        assert record["accounts"] == 2
        assert "ts" in record

    def test_fill_rejected(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.fill_rejected(fill_id="f9", account_id="ACC1", reason="duplicate fill_id")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "fill_rejected"
        assert record["fill_id"] == "f9"
        assert record["reason"] == "duplicate fill_id"

    def test_unknown_instrument(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.unknown_instrument("FOO")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "unknown_instrument"
        assert record["instrument"] == "FOO"

    def test_trades_emitted(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.trades_emitted(trades=3, gross_pnl="650", commission="6.00")
        record = json.loads(buf.getvalue().strip())
        assert record["trades"] == 3
        assert record["gross_pnl"] == "650"

    def test_partition_failed(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.partition_failed(account_id="ACC1", symbol="ESZ5", message="boom")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "partition_failed"
        assert record["symbol"] == "ESZ5"

    def test_import_complete(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.import_complete(trades=3, new_trades=1, open_positions=0, rejected=2)
        record = json.loads(buf.getvalue().strip())
        assert record["new_trades"] == 1
        assert record["rejected"] == 2

    def test_error_event(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.error(message="Cannot read fills", detail="missing column")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "error"
        assert record["detail"] == "missing column"


class TestDisabled:
    """When structured_logs=False, nothing is written to stream."""

    def test_no_output_when_disabled(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("fills.csv", enabled=False, stream=buf)
        logger.import_start(fills=1, accounts=1)
        logger.import_complete(trades=0, new_trades=0, open_positions=1, rejected=0)
        assert buf.getvalue() == ""


class TestWebhook:
    """Only alert events are POSTed; webhook failures are logged, not raised."""

    def test_alert_events_posted(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("fills.csv", stream=buf, webhook_url="http://hook.example/x")
        with mock.patch("cli.structured_log.urllib.request.urlopen") as urlopen:
            logger.import_start(fills=1, accounts=1)
            logger.fill_rejected("f1", "ACC1", "bad")
        assert urlopen.call_count == 1
        req = urlopen.call_args[0][0]
        assert json.loads(req.data)["event"] == "fill_rejected"

    def test_webhook_failure_is_swallowed(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("fills.csv", stream=buf, webhook_url="http://hook.example/x")
        with mock.patch("cli.structured_log.urllib.request.urlopen", side_effect=OSError("down")):
            record = logger.error("boom")
        assert record["event"] == "error"


class TestMultipleEvents:
    def test_newline_delimited(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.import_start(fills=0, accounts=0)
        logger.import_complete(trades=0, new_trades=0, open_positions=0, rejected=0)
        lines = buf.getvalue().strip().split("\n")
        assert len(lines) == 2
        assert json.loads(lines[0])["event"] == "import_start"
        assert json.loads(lines[1])["event"] == "import_complete"
