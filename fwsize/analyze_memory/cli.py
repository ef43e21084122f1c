"""Plain text reports for analysis results and symbol queries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import Contribution

if TYPE_CHECKING:
    from .models import AnalysisResult, TreeNode
    from .symbols import PcLookupResult, SymbolPage


class AnalysisReport:
    """Formats an analysis result as fixed width text tables."""

    # Column width constants
    COL_NAME: int = 48
    COL_SIZE: int = 14
    COL_PERCENT: int = 8
    COL_ORIGIN: int = 12
    COL_KIND: int = 4
    COL_ADDRESS: int = 10
    COL_SEPARATOR: int = 3  # " | "

    TABLE_WIDTH: int = (
        COL_NAME + COL_SEPARATOR + COL_SIZE + COL_SEPARATOR + COL_PERCENT
    )

    @staticmethod
    def _make_separator_line(*widths: int) -> str:
        """Create a separator line like "----+---------+-----"."""
        return "-+-".join("-" * width for width in widths)

    CONTRIBUTION_SEPARATOR: str = _make_separator_line(COL_NAME, COL_SIZE, COL_PERCENT)
    REGION_SEPARATOR: str = _make_separator_line(
        COL_NAME - COL_ORIGIN - COL_SEPARATOR, COL_ORIGIN, COL_SIZE, COL_PERCENT
    )
    SYMBOL_SEPARATOR: str = _make_separator_line(
        COL_NAME, COL_SIZE, COL_KIND, COL_ADDRESS
    )

    def __init__(self, result: AnalysisResult) -> None:
        self.result = result

    def _add_section_header(self, lines: list[str], title: str) -> None:
        lines.append("")
        lines.append("=" * self.TABLE_WIDTH)
        lines.append(title.center(self.TABLE_WIDTH))
        lines.append("=" * self.TABLE_WIDTH)
        lines.append("")

    @staticmethod
    def _percent(size: int, total: int) -> str:
        if total <= 0:
            return "-"
        return f"{size / total * 100:.1f}%"

    def _add_contributions(
        self,
        lines: list[str],
        title: str,
        contributions: list[Contribution],
    ) -> None:
        if not contributions:
            return
        total = sum(item.size for item in contributions)
        self._add_section_header(lines, title)
        lines.append(
            f"{'Name':<{self.COL_NAME}} | {'Size':>{self.COL_SIZE}} | {'Share':>{self.COL_PERCENT}}"
        )
        lines.append(self.CONTRIBUTION_SEPARATOR)
        for item in contributions:
            lines.append(
                f"{_truncate(item.name, self.COL_NAME):<{self.COL_NAME}} | "
                f"{item.size:>{self.COL_SIZE - 2},} B | "
                f"{self._percent(item.size, total):>{self.COL_PERCENT}}"
            )

    def _add_totals(self, lines: list[str]) -> None:
        totals = self.result.summary.section_totals
        self._add_section_header(lines, "Section Totals")
        rows = [
            ("Flash (text + rodata + data)", totals.flash_bytes),
            ("RAM (data + bss)", totals.ram_bytes),
            (".text", totals.text_bytes),
            (".rodata", totals.rodata_bytes),
            (".data", totals.data_bytes),
            (".bss", totals.bss_bytes),
        ]
        if totals.flash_region_bytes is not None:
            rows.append(("Flash regions (linker map)", totals.flash_region_bytes))
        if totals.ram_region_bytes is not None:
            rows.append(("RAM regions (linker map)", totals.ram_region_bytes))
        for label, size in rows:
            lines.append(f"{label:<{self.COL_NAME}} | {size:>{self.COL_SIZE - 2},} B")

    def _add_tree(self, lines: list[str], tree: list[TreeNode]) -> None:
        if not tree:
            return
        self._add_section_header(lines, "Libraries and Objects")
        for library in tree:
            lines.append(f"{library.name} ({library.size:,} B)")
            for child in library.children:
                lines.append(f"    {child.name} ({child.size:,} B)")

    def _add_regions(self, lines: list[str]) -> None:
        regions = self.result.summary.memory_regions
        if not regions:
            return
        name_width = self.COL_NAME - self.COL_ORIGIN - self.COL_SEPARATOR
        self._add_section_header(lines, "Memory Regions")
        lines.append(
            f"{'Region':<{name_width}} | {'Origin':<{self.COL_ORIGIN}} | "
            f"{'Length':>{self.COL_SIZE}} | {'Used':>{self.COL_PERCENT}}"
        )
        lines.append(self.REGION_SEPARATOR)
        for region in regions:
            used = (
                "-"
                if region.used is None
                else self._percent(region.used, region.length)
            )
            lines.append(
                f"{region.name:<{name_width}} | {region.origin:<{self.COL_ORIGIN}} | "
                f"{region.length:>{self.COL_SIZE - 2},} B | {used:>{self.COL_PERCENT}}"
            )

    def _add_findings(self, lines: list[str]) -> None:
        findings = self.result.summary.findings
        self._add_section_header(lines, "Findings")
        if not findings:
            lines.append("No findings.")
            return
        for finding in findings:
            lines.append(f"[{finding.severity}] {finding.id}: {finding.value:,}")
            for item in finding.items:
                lines.append(f"    {item}")

    def generate(self) -> str:
        meta = self.result.meta
        summary = self.result.summary
        lines: list[str] = []

        lines.append("=" * self.TABLE_WIDTH)
        lines.append("Firmware Size Analysis".center(self.TABLE_WIDTH))
        lines.append("=" * self.TABLE_WIDTH)
        lines.append("")
        lines.append(f"Binary: {meta.binary_path}")
        if meta.map_path:
            lines.append(f"Map:    {meta.map_path}")
        cache_state = "hit" if meta.cache.hit else "miss"
        lines.append(f"Cache:  {cache_state} ({meta.cache.key[:12]})")

        self._add_totals(lines)
        top_symbols = [
            Contribution(name=symbol.name, size=symbol.size)
            for symbol in summary.top_symbols
        ]
        self._add_contributions(lines, "Top Symbols", top_symbols)
        self._add_contributions(lines, "Top Sections", summary.top_sections)
        self._add_contributions(lines, "Top Objects", summary.top_objects)
        self._add_contributions(lines, "Top Libraries", summary.top_libraries)
        self._add_tree(lines, summary.map_tree)
        self._add_regions(lines)
        self._add_findings(lines)
        lines.append("")
        return "\n".join(lines)


def _truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 3] + "..."


def generate_report(result: AnalysisResult) -> str:
    """Generate the text report for an analysis result."""
    return AnalysisReport(result).generate()


def format_symbol_page(page: SymbolPage, page_number: int, page_size: int) -> str:
    """Format one page of a symbol listing."""
    cols = AnalysisReport
    first = (max(page_number, 1) - 1) * max(page_size, 1)
    lines = [
        f"{'Symbol':<{cols.COL_NAME}} | {'Size':>{cols.COL_SIZE}} | "
        f"{'Kind':<{cols.COL_KIND}} | {'Address':<{cols.COL_ADDRESS}}",
        cols.SYMBOL_SEPARATOR,
    ]
    for symbol in page.items:
        lines.append(
            f"{_truncate(symbol.name, cols.COL_NAME):<{cols.COL_NAME}} | "
            f"{symbol.size:>{cols.COL_SIZE - 2},} B | "
            f"{symbol.kind:<{cols.COL_KIND}} | {symbol.address or '':<{cols.COL_ADDRESS}}"
        )
    if page.items:
        lines.append(
            f"Showing {first + 1}-{first + len(page.items)} of {page.total} symbols"
        )
    else:
        lines.append(f"No symbols on this page ({page.total} matching)")
    return "\n".join(lines)


def format_lookup(result: PcLookupResult) -> str:
    """Format a PC lookup as a single line."""
    if (symbol := result.symbol) is None:
        return f"{result.address}: no containing symbol"
    return (
        f"{result.address}: {symbol.name}+0x{symbol.offset:x} "
        f"(start {symbol.address}, size {symbol.size:,} B, {symbol.section_guess})"
    )
