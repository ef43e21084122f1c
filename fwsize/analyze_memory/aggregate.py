"""Rollups of parsed sections, symbols and map contributions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .const import (
    FLASH_REGION_PATTERNS,
    RAM_REGION_PATTERNS,
    SECTION_BSS,
    SECTION_DATA,
    SECTION_RODATA,
    SECTION_TEXT,
    TOP_SYMBOLS_LIMIT,
)
from .models import Contribution, MemoryRegion, Section, SectionTotals, Symbol, TreeNode


def _by_size_desc(item) -> int:
    return -item.size


def compute_section_totals(sections: Iterable[Section]) -> SectionTotals:
    """Sum .text, .rodata, .data and .bss by exact section name.

    Any other section is left out of the totals.
    """
    totals = SectionTotals()
    for section in sections:
        if section.name == SECTION_TEXT:
            totals.text_bytes += section.size
        elif section.name == SECTION_RODATA:
            totals.rodata_bytes += section.size
        elif section.name == SECTION_DATA:
            totals.data_bytes += section.size
        elif section.name == SECTION_BSS:
            totals.bss_bytes += section.size
    return totals


def apply_region_totals(
    totals: SectionTotals, regions: Iterable[MemoryRegion]
) -> SectionTotals:
    """Fill the region overrides from linker map memory usage.

    The section derived totals are kept as they are. Each override stays None
    until a region of its kind reports a used value.
    """
    flash: int | None = None
    ram: int | None = None
    for region in regions:
        if region.used is None:
            continue
        name = region.name.lower()
        if any(pattern in name for pattern in FLASH_REGION_PATTERNS):
            flash = (flash or 0) + region.used
        if any(pattern in name for pattern in RAM_REGION_PATTERNS):
            ram = (ram or 0) + region.used
    totals.flash_region_bytes = flash
    totals.ram_region_bytes = ram
    return totals


def top_contributions(sizes: Mapping[str, int], limit: int) -> list[Contribution]:
    """Largest entries of a name to size mapping, biggest first.

    Equal sizes keep the mapping's insertion order.
    """
    contributions = [Contribution(name=name, size=size) for name, size in sizes.items()]
    contributions.sort(key=_by_size_desc)
    return contributions[:limit]


def build_tree(
    tree: Mapping[str, Mapping[str, int]], library_limit: int, object_limit: int
) -> list[TreeNode]:
    """Build the two level library -> object tree.

    Children are truncated before the parent is sized, so a parent's size is
    the sum of its retained children only.
    """
    libraries: list[TreeNode] = []
    for library, objects in tree.items():
        children = [
            TreeNode(name=name, size=size) for name, size in objects.items()
        ]
        children.sort(key=_by_size_desc)
        children = children[:object_limit]
        libraries.append(
            TreeNode(
                name=library,
                size=sum(child.size for child in children),
                children=children,
            )
        )
    libraries.sort(key=_by_size_desc)
    return libraries[:library_limit]


def top_symbols(symbols: Iterable[Symbol], limit: int = TOP_SYMBOLS_LIMIT) -> list[Symbol]:
    return sorted(symbols, key=_by_size_desc)[:limit]
