"""AccessLens reporting service for rendering analysis results."""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from ..models import AnalysisResult, GeoInfo


STATUS_GROUPS = ("2xx", "3xx", "4xx", "5xx")


class ReportFormat(str, Enum):
    """Report output formats."""

    CONSOLE = "console"
    FILE = "file"


class OutputConfig(BaseModel):
    """Configuration for report output."""

    format: ReportFormat = ReportFormat.CONSOLE
    file_path: Optional[Path] = None
    top_n: int = Field(default=10, ge=1, description="Entries shown per ranking")
    max_error_samples: int = Field(default=5, description="Error samples shown in default mode")
    terminal_width: int = Field(default=79, description="Terminal width for formatting")


class CountEntry(BaseModel):
    """One ranked key with its count and share of all requests."""

    key: str
    count: int
    percentage: float


class ErrorInfo(BaseModel):
    error_count: int
    error_samples: List[str] = Field(default_factory=list)


class AnalysisReport(BaseModel):
    """Presentation view of an AnalysisResult."""

    analysis_id: str
    analyzed_at: datetime
    total_requests: int
    total_lines: int
    status_group_ratios: Dict[str, float]
    top_paths: List[CountEntry]
    top_status_codes: List[CountEntry]
    top_ips: List[CountEntry]
    error_info: ErrorInfo


def percentage(count: int, total: int) -> float:
    """Share of ``count`` in ``total`` as a percentage, rounded half-up to one decimal."""
    if total == 0:
        return 0.0
    value = Decimal(count * 100) / Decimal(total)
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def top_entries(counts: Mapping[str, int], top_n: int, total: int) -> List[CountEntry]:
    """Rank a count mapping by descending count and keep the first ``top_n``."""
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:top_n]
    return [CountEntry(key=key, count=count, percentage=percentage(count, total)) for key, count in ranked]


def build_report(result: AnalysisResult, top_n: int = 10) -> AnalysisReport:
    """Turn raw counts into ratios and top-N rankings."""
    total = result.total_requests

    return AnalysisReport(
        analysis_id=result.analysis_id,
        analyzed_at=result.analyzed_at,
        total_requests=total,
        total_lines=result.total_lines,
        status_group_ratios={
            group: percentage(result.status_group_counts.get(group, 0), total)
            for group in STATUS_GROUPS
        },
        top_paths=top_entries(result.path_counts, top_n, total),
        top_status_codes=top_entries(result.status_code_counts, top_n, total),
        top_ips=top_entries(result.ip_counts, top_n, total),
        error_info=ErrorInfo(error_count=result.error_count, error_samples=list(result.error_samples)),
    )


class ReportingService:
    """Renders analysis reports as plain text."""

    def __init__(self, config: Optional[OutputConfig] = None):
        self.config = config or OutputConfig()

    def generate_report(
        self,
        result: AnalysisResult,
        geo_info: Optional[Mapping[str, GeoInfo]] = None,
        verbose: bool = False,
    ) -> str:
        """Generate the complete text report for a completed analysis.

        Args:
            result: Completed analysis result
            geo_info: Optional geolocation of top IPs, in display order
            verbose: Show every captured error sample

        Returns:
            Formatted report
        """
        report = build_report(result, self.config.top_n)

        sections = [
            self._generate_header(report),
            self._format_status_groups(report),
            self._format_ranking("Top Paths", report.top_paths),
            self._format_ranking("Top Status Codes", report.top_status_codes),
            self._format_ranking("Top Client IPs", report.top_ips),
        ]
        if geo_info:
            sections.append(self._format_geo_info(report, geo_info))
        sections.append(self._format_errors(report.error_info, verbose))

        return "\n\n".join(sections) + "\n"

    def save_report(self, report_content: str, file_path: Path) -> None:
        """Save report content to file."""
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(report_content)

    def _rule(self, char: str = "=") -> str:
        return char * self.config.terminal_width

    def _generate_header(self, report: AnalysisReport) -> str:
        return "\n".join([
            self._rule(),
            "ACCESS LOG ANALYSIS REPORT".center(self.config.terminal_width).rstrip(),
            self._rule(),
            f"Analysis ID:    {report.analysis_id}",
            f"Analyzed at:    {report.analyzed_at:%Y-%m-%d %H:%M:%S}",
            f"Total lines:    {report.total_lines:,}",
            f"Total requests: {report.total_requests:,}",
        ])

    def _format_status_groups(self, report: AnalysisReport) -> str:
        lines = ["Status Groups", self._rule("-")]
        for group, ratio in report.status_group_ratios.items():
            lines.append(f"  {group:<6}{ratio:>6.1f}%")
        return "\n".join(lines)

    def _format_ranking(self, title: str, entries: List[CountEntry]) -> str:
        lines = [title, self._rule("-")]
        if not entries:
            lines.append("  (none)")
        key_width = max(1, self.config.terminal_width - 24)
        for rank, entry in enumerate(entries, start=1):
            key = entry.key if len(entry.key) <= key_width else entry.key[:key_width - 3] + "..."
            lines.append(f"{rank:>3}. {key:<{key_width}}{entry.count:>9,}{entry.percentage:>7.1f}%")
        return "\n".join(lines)

    def _format_geo_info(self, report: AnalysisReport, geo_info: Mapping[str, GeoInfo]) -> str:
        counts = {entry.key: entry.count for entry in report.top_ips}
        lines = ["Top Client IP Locations", self._rule("-")]
        for ip, info in geo_info.items():
            location = ", ".join(part for part in (info.city, info.region, info.country))
            lines.append(f"  {ip:<40} {counts.get(ip, 0):>9,}  {location} ({info.org})")
        return "\n".join(lines)

    def _format_errors(self, error_info: ErrorInfo, verbose: bool) -> str:
        lines = ["Parse Errors", self._rule("-"), f"  Error lines: {error_info.error_count:,}"]
        limit = len(error_info.error_samples) if verbose else self.config.max_error_samples
        for sample in error_info.error_samples[:limit]:
            width = self.config.terminal_width - 4
            lines.append(f"    {sample[:width]}{'...' if len(sample) > width else ''}")
        hidden = len(error_info.error_samples) - limit
        if hidden > 0:
            lines.append(f"    ... and {hidden} more samples (use --verbose)")
        return "\n".join(lines)
