"""Tests for AccessLens parsing services."""

import pytest

from accesslens.models import LogRecord
from accesslens.services.parsing import AccessLogCsvParser, CsvLineLexer, LineParseError, split_csv_line


class TestCsvLineLexer:
    """Test cases for the quote-aware line lexer."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.lexer = CsvLineLexer()

    def test_empty_line(self) -> None:
        """An empty line yields a single empty field."""
        assert self.lexer.split("") == [""]

    def test_simple_fields(self) -> None:
        """Unquoted fields split on commas."""
        assert self.lexer.split("a,b,c") == ["a", "b", "c"]

    def test_fields_are_not_trimmed(self) -> None:
        """Whitespace around values is preserved at this layer."""
        assert self.lexer.split(" a , b ") == [" a ", " b "]

    def test_empty_fields(self) -> None:
        """Consecutive and trailing commas produce empty fields."""
        assert self.lexer.split(",a,,") == ["", "a", "", ""]

    def test_quoted_field_with_comma(self) -> None:
        """Commas inside quotes do not split."""
        assert self.lexer.split('a,"b,c",d') == ["a", "b,c", "d"]

    def test_escaped_quote(self) -> None:
        """A doubled quote inside quotes is a literal quote."""
        assert self.lexer.split('"say ""hi""",x') == ['say "hi"', "x"]

    def test_quoted_field_at_end_of_line(self) -> None:
        """A closing quote at end of line ends the last field."""
        assert self.lexer.split('a,"b"') == ["a", "b"]

    def test_quoted_field_followed_by_trailing_comma(self) -> None:
        """A comma after a closing quote still starts a new field."""
        assert self.lexer.split('"a",') == ["a", ""]

    def test_empty_quoted_field(self) -> None:
        """Two quotes alone make an empty field."""
        assert self.lexer.split('"",x') == ["", "x"]

    def test_text_after_closing_quote_is_kept(self) -> None:
        """Characters between a closing quote and the next comma join the field."""
        assert self.lexer.split('"a"b,c') == ["ab", "c"]

    def test_quote_inside_unquoted_field_is_literal(self) -> None:
        """Quotes only open a quoted section at the start of a field."""
        assert self.lexer.split('ab"c,d') == ['ab"c', "d"]

    def test_unterminated_quote_consumes_rest_of_line(self) -> None:
        """An unterminated quote swallows everything after it without raising."""
        assert self.lexer.split('a,"b,c,d') == ["a", "b,c,d"]

    def test_bom_is_stripped(self) -> None:
        """A leading byte-order mark is removed before splitting."""
        assert self.lexer.split('\ufeff"a",b') == ["a", "b"]

    def test_bom_only_stripped_at_start(self) -> None:
        """A BOM elsewhere in the line is data."""
        assert self.lexer.split("a,\ufeffb") == ["a", "\ufeffb"]

    def test_field_count_ignores_quoted_commas(self) -> None:
        """Field count equals unquoted commas plus one."""
        line = '1,"2,2",3,"4,4,4",5'
        assert len(self.lexer.split(line)) == 5

    def test_convenience_function(self) -> None:
        """split_csv_line delegates to the lexer."""
        assert split_csv_line('x,"y,z"') == ["x", "y,z"]


class TestAccessLogCsvParser:
    """Test cases for the streaming record parser."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.parser = AccessLogCsvParser()
        self.records = []

    def parse(self, lines):
        return self.parser.parse(lines, self.records.append)

    def test_parse_valid_line(self, make_line) -> None:
        """All 12 fields are assigned and converted."""
        line = make_line(
            status="404", ip="10.0.0.1", path="/api/items", method="POST",
            received="100", sent="2048", response_time="1.5",
            uri_with_args="/api/items?page=2",
        )

        record = self.parser.parse_line(line)

        assert isinstance(record, LogRecord)
        assert record.timestamp == "2024-01-15T10:30:45Z"
        assert record.client_ip == "10.0.0.1"
        assert record.http_method == "POST"
        assert record.request_uri == "/api/items"
        assert record.user_agent == "Mozilla/5.0"
        assert record.http_status == 404
        assert record.http_version == "HTTP/1.1"
        assert record.received_bytes == 100
        assert record.sent_bytes == 2048
        assert record.client_response_time == 1.5
        assert record.ssl_protocol == "TLSv1.2"
        assert record.original_request_uri_with_args == "/api/items?page=2"

    def test_fields_are_trimmed(self, make_line) -> None:
        """Values are stripped after lexing."""
        line = make_line(status=" 200 ", ip=" 1.2.3.4 ", path="  /x ")

        record = self.parser.parse_line(line)

        assert record.http_status == 200
        assert record.client_ip == "1.2.3.4"
        assert record.request_uri == "/x"

    def test_quoted_user_agent_with_commas(self, make_line) -> None:
        """A quoted field containing commas maps onto a single attribute."""
        line = make_line(user_agent='"Mozilla/5.0 (X11, Linux) ""quoted"""')

        record = self.parser.parse_line(line)

        assert record.user_agent == 'Mozilla/5.0 (X11, Linux) "quoted"'
        assert record.http_status == 200

    def test_lexer_values_round_trip_onto_record(self, make_line) -> None:
        """Every lexed field, trimmed, appears on the record in column order."""
        line = make_line(status="301", received="0", sent="15", response_time="0.5")
        fields = [f.strip() for f in CsvLineLexer().split(line)]

        record = self.parser.parse_line(line)

        values = [str(v) for v in record.model_dump().values()]
        assert values[:5] == fields[:5]
        assert record.http_status == int(fields[5])
        assert record.received_bytes == int(fields[7])
        assert record.sent_bytes == int(fields[8])
        assert record.client_response_time == float(fields[9])
        assert values[10:] == fields[10:]

    @pytest.mark.parametrize("field,value", [
        ("status", "abc"),
        ("status", "200.0"),
        ("status", ""),
        ("received", "1e3"),
        ("sent", "ten"),
        ("response_time", "fast"),
        ("response_time", "1_000"),
        ("response_time", "inf"),
        ("response_time", "1.5s"),
    ])
    def test_conversion_errors(self, make_line, field, value) -> None:
        """Non-numeric values in numeric columns raise LineParseError."""
        with pytest.raises(LineParseError, match="Invalid"):
            self.parser.parse_line(make_line(**{field: value}))

    @pytest.mark.parametrize("value,expected", [
        ("1e-3", 0.001),
        (".5", 0.5),
        ("3.", 3.0),
        ("-0.25", -0.25),
        ("+2E2", 200.0),
    ])
    def test_decimal_forms_accepted(self, make_line, value, expected) -> None:
        """The response time column accepts plain and exponent decimal forms."""
        record = self.parser.parse_line(make_line(response_time=value))
        assert record.client_response_time == expected

    def test_underscore_response_time_is_an_error_line(self, csv_header, make_line) -> None:
        """Digit separators are not valid in the response time column."""
        bad = make_line(response_time="1_000")

        outcome = self.parse([csv_header, make_line(), bad])

        assert outcome.success_count == 1
        assert outcome.error_count == 1
        assert outcome.error_samples == [bad]

    def test_signed_integers_accepted(self, make_line) -> None:
        """Integer columns accept an explicit sign."""
        record = self.parser.parse_line(make_line(received="+5", sent="-1"))
        assert record.received_bytes == 5
        assert record.sent_bytes == -1

    def test_wrong_field_count(self) -> None:
        """Lines without exactly 12 fields are rejected."""
        with pytest.raises(LineParseError, match="Field count mismatch"):
            self.parser.parse_line("a,b,c")

    def test_scenario_two_valid_lines(self, csv_header, make_line) -> None:
        """Header plus two valid lines produce two records in order."""
        lines = [csv_header, make_line(status="200"), make_line(status="404")]

        outcome = self.parse(lines)

        assert outcome.success_count == 2
        assert outcome.total_lines == 2
        assert outcome.error_count == 0
        assert outcome.error_samples == []
        assert [r.http_status for r in self.records] == [200, 404]

    def test_empty_stream(self) -> None:
        """No lines at all yields zero counters and no callbacks."""
        outcome = self.parse([])

        assert outcome.success_count == 0
        assert outcome.total_lines == 0
        assert outcome.error_count == 0
        assert self.records == []

    def test_header_only(self, csv_header) -> None:
        """The header is never counted."""
        outcome = self.parse([csv_header])

        assert outcome.total_lines == 0
        assert outcome.success_count == 0

    def test_header_is_not_validated(self, make_line) -> None:
        """The first line is skipped even if it looks like data."""
        outcome = self.parse([make_line(), make_line()])

        assert outcome.total_lines == 1
        assert len(self.records) == 1

    def test_blank_lines_are_ignored(self, csv_header, make_line) -> None:
        """Whitespace-only lines affect no counter."""
        lines = [csv_header, "", make_line(), "   ", "\t", make_line(), ""]

        outcome = self.parse(lines)

        assert outcome.total_lines == 2
        assert outcome.success_count == 2
        assert outcome.error_count == 0

    def test_malformed_lines_are_counted_and_sampled(self, csv_header, make_line) -> None:
        """Bad lines are counted, their raw text sampled, and parsing continues."""
        bad_count = "only,three,fields"
        bad_number = make_line(sent="lots")
        lines = [csv_header, make_line(), bad_count, make_line(), bad_number]

        outcome = self.parse(lines)

        assert outcome.total_lines == 4
        assert outcome.success_count == 2
        assert outcome.error_count == 2
        assert outcome.error_samples == [bad_count, bad_number]
        assert len(self.records) == 2

    def test_error_samples_capped_at_ten(self, csv_header) -> None:
        """Only the first ten failing lines are kept."""
        bad_lines = [f"bad line {i}" for i in range(15)]

        outcome = self.parse([csv_header, *bad_lines])

        assert outcome.error_count == 15
        assert outcome.total_lines == 15
        assert outcome.error_samples == bad_lines[:10]

    def test_sample_keeps_raw_line_text(self, csv_header) -> None:
        """Samples hold the original line, not the lexed fields."""
        raw = '  "unterminated,quote  '

        outcome = self.parse([csv_header, raw])

        assert outcome.error_samples == [raw]

    def test_counter_invariants(self, csv_header, make_line) -> None:
        """total_lines == success_count + error_count, samples <= min(errors, 10)."""
        lines = [csv_header]
        for i in range(30):
            lines.append(make_line() if i % 3 else f"broken {i}")
            lines.append("")

        outcome = self.parse(lines)

        assert outcome.total_lines == outcome.success_count + outcome.error_count
        assert len(outcome.error_samples) <= min(outcome.error_count, 10)
        assert outcome.success_count == len(self.records) == 20

    def test_records_delivered_in_line_order(self, csv_header, make_line) -> None:
        """The sink is called once per valid line, in order."""
        paths = [f"/p{i}" for i in range(5)]

        self.parse([csv_header, *(make_line(path=p) for p in paths)])

        assert [r.request_uri for r in self.records] == paths

    def test_parse_is_lazy_over_generators(self, csv_header, make_line) -> None:
        """Lines are consumed one at a time from a generator."""
        consumed = []

        def lines():
            yield csv_header
            for i in range(3):
                consumed.append(i)
                yield make_line()

        seen_when_called = []
        self.parser.parse(lines(), lambda record: seen_when_called.append(len(consumed)))

        assert seen_when_called == [1, 2, 3]

    def test_io_errors_propagate(self, csv_header, make_line) -> None:
        """Errors raised by the line source are not swallowed."""
        def lines():
            yield csv_header
            yield make_line()
            raise OSError("disk gone")

        with pytest.raises(OSError, match="disk gone"):
            self.parse(lines())

        assert len(self.records) == 1

    def test_get_columns(self) -> None:
        """Column names follow the record layout."""
        columns = AccessLogCsvParser.get_columns()
        assert len(columns) == AccessLogCsvParser.EXPECTED_FIELD_COUNT
        assert columns[1] == "client_ip"
        assert columns[5] == "http_status"
