"""Streaming traffic statistics over parsed access-log records."""

from collections import Counter
from typing import Dict

from ..models import LogRecord


def status_group(http_status: int) -> str:
    """Return the status class of a code, e.g. ``404 -> "4xx"``."""
    return f"{http_status // 100}xx"


class StatsAggregator:
    """Folds LogRecords into four count mappings.

    The fold is commutative and associative: records can be added in any
    order, and partial aggregators can be combined with :meth:`merge`.
    """

    def __init__(self):
        self._status_codes: Counter = Counter()
        self._status_groups: Counter = Counter()
        self._paths: Counter = Counter()
        self._ips: Counter = Counter()
        self._total = 0

    def add(self, record: LogRecord) -> None:
        """Count one record."""
        self._status_codes[str(record.http_status)] += 1
        self._status_groups[status_group(record.http_status)] += 1
        self._paths[record.request_uri] += 1
        self._ips[record.client_ip] += 1
        self._total += 1

    __call__ = add

    def merge(self, other: "StatsAggregator") -> "StatsAggregator":
        """Add the counts of another aggregator into this one."""
        self._status_codes.update(other._status_codes)
        self._status_groups.update(other._status_groups)
        self._paths.update(other._paths)
        self._ips.update(other._ips)
        self._total += other._total
        return self

    @property
    def total(self) -> int:
        return self._total

    @property
    def status_code_counts(self) -> Dict[str, int]:
        return dict(self._status_codes)

    @property
    def status_group_counts(self) -> Dict[str, int]:
        return dict(self._status_groups)

    @property
    def path_counts(self) -> Dict[str, int]:
        return dict(self._paths)

    @property
    def ip_counts(self) -> Dict[str, int]:
        return dict(self._ips)
