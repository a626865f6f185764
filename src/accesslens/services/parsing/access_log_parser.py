"""Streaming parser for CSV access-log exports."""

import logging
import re
from typing import Callable, Iterable, List

from .csv_lexer import CsvLineLexer
from ...models import LogRecord, ParseOutcome, MAX_ERROR_SAMPLES


logger = logging.getLogger(__name__)

RecordSink = Callable[[LogRecord], None]


class LineParseError(ValueError):
    """Raised when a data line cannot be converted into a LogRecord."""
    pass


class AccessLogCsvParser:
    """Parser for the 12-column CSV access-log layout.

    Column order::

        timestamp, client_ip, http_method, request_uri, user_agent,
        http_status, http_version, received_bytes, sent_bytes,
        client_response_time, ssl_protocol, original_request_uri_with_args

    Records are handed to a sink one at a time instead of being collected,
    so memory use does not grow with the size of the file.
    """

    EXPECTED_FIELD_COUNT = 12

    _INTEGER_PATTERN = re.compile(r"[+-]?\d+")
    _DECIMAL_PATTERN = re.compile(r"[+-]?(?:NaN|Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

    def __init__(self, lexer: CsvLineLexer = None):
        self.lexer = lexer or CsvLineLexer()

    def parse(self, lines: Iterable[str], on_record: RecordSink) -> ParseOutcome:
        """Parse a stream of CSV lines.

        The first line is treated as the header and skipped. Blank lines are
        ignored entirely. Every other line is counted; lines that fail to
        parse are counted as errors and the first few are kept as samples.

        Args:
            lines: Iterable of text lines without line terminators
            on_record: Called once per valid record, in line order

        Returns:
            ParseOutcome with line counters and error samples

        Raises:
            Whatever the ``lines`` iterable raises while being read
        """
        outcome = ParseOutcome()
        iterator = iter(lines)

        header = next(iterator, None)
        if header is None:
            return outcome

        for line in iterator:
            if not line.strip():
                continue

            outcome.total_lines += 1

            try:
                record = self.parse_line(line)
            except LineParseError as e:
                outcome.error_count += 1
                if len(outcome.error_samples) < MAX_ERROR_SAMPLES:
                    outcome.error_samples.append(line)
                logger.debug("Skipping malformed line %d: %s", outcome.total_lines, e)
                continue

            outcome.success_count += 1
            on_record(record)

        logger.info(
            "CSV parsing complete: total_lines=%d, success_count=%d, error_count=%d",
            outcome.total_lines, outcome.success_count, outcome.error_count,
        )
        if outcome.error_count > 0:
            logger.warning(
                "Parse errors encountered: error_count=%d, samples=%s",
                outcome.error_count, outcome.error_samples,
            )

        return outcome

    def parse_line(self, line: str) -> LogRecord:
        """Convert a single data line into a LogRecord.

        Raises:
            LineParseError: If the field count is wrong or a numeric field
                does not convert
        """
        fields = self.lexer.split(line)

        if len(fields) != self.EXPECTED_FIELD_COUNT:
            raise LineParseError(
                f"Field count mismatch: expected={self.EXPECTED_FIELD_COUNT}, actual={len(fields)}"
            )

        fields = [field.strip() for field in fields]

        return LogRecord(
            timestamp=fields[0],
            client_ip=fields[1],
            http_method=fields[2],
            request_uri=fields[3],
            user_agent=fields[4],
            http_status=self._to_int(fields[5], "http_status"),
            http_version=fields[6],
            received_bytes=self._to_int(fields[7], "received_bytes"),
            sent_bytes=self._to_int(fields[8], "sent_bytes"),
            client_response_time=self._to_float(fields[9], "client_response_time"),
            ssl_protocol=fields[10],
            original_request_uri_with_args=fields[11],
        )

    def _to_int(self, value: str, name: str) -> int:
        if not self._INTEGER_PATTERN.fullmatch(value):
            raise LineParseError(f"Invalid {name}: {value!r}")
        return int(value)

    def _to_float(self, value: str, name: str) -> float:
        if not self._DECIMAL_PATTERN.fullmatch(value):
            raise LineParseError(f"Invalid {name}: {value!r}")
        return float(value)

    @staticmethod
    def get_columns() -> List[str]:
        """Names of the expected columns, in order."""
        return list(LogRecord.model_fields.keys())
