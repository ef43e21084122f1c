"""Heuristics that point at common causes of firmware bloat."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from .const import (
    EXIDX_SECTION_PATTERNS,
    FINDING_ITEMS_LIMIT,
    FLOAT_SYMBOL_PATTERNS,
    RAM_SYMBOL_KINDS,
    FindingId,
    Severity,
)
from .models import Finding, Section, Symbol


def _symbol_finding(
    finding_id: FindingId,
    symbols: Sequence[Symbol],
    predicate: Callable[[Symbol], bool],
) -> Finding | None:
    matched = sorted(
        (symbol for symbol in symbols if predicate(symbol)),
        key=lambda symbol: -symbol.size,
    )
    total = sum(symbol.size for symbol in matched)
    if not total:
        return None
    return Finding(
        id=finding_id,
        severity=Severity.WARN,
        value=total,
        items=[symbol.name for symbol in matched[:FINDING_ITEMS_LIMIT]],
    )


def _is_ram_symbol(symbol: Symbol) -> bool:
    return symbol.kind in RAM_SYMBOL_KINDS


def _is_float_symbol(symbol: Symbol) -> bool:
    name = symbol.name.lower()
    return any(pattern in name for pattern in FLOAT_SYMBOL_PATTERNS)


def _is_exidx_section(section: Section) -> bool:
    return any(pattern in section.name for pattern in EXIDX_SECTION_PATTERNS)


def compute_findings(
    symbols: Sequence[Symbol],
    sections: Sequence[Section],
    strings_count: int | None,
) -> list[Finding]:
    """Run every heuristic and return the findings that fired.

    Args:
        symbols: All sized symbols of the binary, not just the top list
        sections: Section headers of the binary
        strings_count: Lines printed by the strings tool, None if it failed

    Returns:
        Findings in a fixed order: RAM_PRESSURE, FLOAT_BLOAT, EXIDX, STRING_COUNT
    """
    findings: list[Finding] = []

    if ram := _symbol_finding(FindingId.RAM_PRESSURE, symbols, _is_ram_symbol):
        findings.append(ram)

    if floats := _symbol_finding(FindingId.FLOAT_BLOAT, symbols, _is_float_symbol):
        findings.append(floats)

    exidx_sections = [section for section in sections if _is_exidx_section(section)]
    if exidx_total := sum(section.size for section in exidx_sections):
        findings.append(
            Finding(
                id=FindingId.EXIDX,
                severity=Severity.INFO,
                value=exidx_total,
                items=[section.name for section in exidx_sections],
            )
        )

    if strings_count:
        findings.append(
            Finding(
                id=FindingId.STRING_COUNT,
                severity=Severity.INFO,
                value=strings_count,
            )
        )

    return findings
