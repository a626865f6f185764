"""Parsing services for AccessLens."""

from .csv_lexer import CsvLineLexer, split_csv_line
from .access_log_parser import AccessLogCsvParser, LineParseError

__all__ = ["CsvLineLexer", "split_csv_line", "AccessLogCsvParser", "LineParseError"]
