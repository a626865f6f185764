"""Quote-aware splitting of a single CSV line into fields."""

from typing import List


BOM = "\ufeff"
QUOTE = '"'
DELIMITER = ","


class CsvLineLexer:
    """Splits one CSV line into its raw field values.

    Quoting follows the usual CSV conventions: a field that starts with a
    double quote runs until the matching closing quote, ``""`` inside a quoted
    field is a literal quote, and commas inside quotes do not split. Field
    values are returned verbatim (no trimming). Malformed quoting never
    raises; an unterminated quote swallows the rest of the line.
    """

    def split(self, line: str) -> List[str]:
        """Split a line into fields.

        Args:
            line: One line of CSV text without its line terminator

        Returns:
            Ordered list of field values; an empty line yields ``[""]``
        """
        if not line:
            return [""]

        if line[0] == BOM:
            line = line[1:]

        fields: List[str] = []
        current: List[str] = []
        i = 0
        length = len(line)

        while i < length:
            ch = line[i]

            if not current and ch == QUOTE:
                i = self._read_quoted(line, i + 1, current)
                # after the closing quote only a delimiter ends the field
                if i < length and line[i] == DELIMITER:
                    fields.append("".join(current))
                    current = []
                    i += 1
            elif ch == DELIMITER:
                fields.append("".join(current))
                current = []
                i += 1
            else:
                current.append(ch)
                i += 1

        fields.append("".join(current))
        return fields

    @staticmethod
    def _read_quoted(line: str, i: int, current: List[str]) -> int:
        """Consume a quoted section starting after the opening quote.

        Returns the index just past the closing quote, or the line length
        when the quote is never closed.
        """
        length = len(line)
        while i < length:
            ch = line[i]
            if ch == QUOTE:
                if i + 1 < length and line[i + 1] == QUOTE:
                    current.append(QUOTE)
                    i += 2
                    continue
                return i + 1
            current.append(ch)
            i += 1
        return i


def split_csv_line(line: str) -> List[str]:
    """Convenience wrapper around :class:`CsvLineLexer`."""
    return CsvLineLexer().split(line)
