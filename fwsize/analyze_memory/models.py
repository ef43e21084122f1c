"""Records produced by firmware size analysis.

Everything here round-trips through plain JSON via ``to_dict``/``from_dict``;
the JSON keys are the field names.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .const import SECTION_GUESS_OTHER, SYMBOL_KIND_TO_SECTION


def guess_section(kind: str) -> str:
    """Map an nm symbol type letter to the section it most likely lives in."""
    return SYMBOL_KIND_TO_SECTION.get(kind, SECTION_GUESS_OTHER)


@dataclass(frozen=True)
class Section:
    """A section header as reported by objdump -h."""

    name: str
    size: int
    virtual_address: str | None = None
    load_address: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Section:
        return cls(
            name=data["name"],
            size=int(data["size"]),
            virtual_address=data.get("virtual_address"),
            load_address=data.get("load_address"),
        )


@dataclass(frozen=True)
class Symbol:
    """A sized symbol from nm -S output."""

    name: str
    size: int
    address: str | None
    kind: str
    section_guess: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Symbol:
        return cls(
            name=data["name"],
            size=int(data["size"]),
            address=data.get("address"),
            kind=data["kind"],
            section_guess=data["section_guess"],
        )


@dataclass
class SectionTotals:
    text_bytes: int = 0
    rodata_bytes: int = 0
    data_bytes: int = 0
    bss_bytes: int = 0
    # Only set when the linker map reports region usage
    flash_region_bytes: int | None = None
    ram_region_bytes: int | None = None

    @property
    def flash_bytes(self) -> int:
        """Total flash usage (text + rodata + data)."""
        return self.text_bytes + self.rodata_bytes + self.data_bytes

    @property
    def ram_bytes(self) -> int:
        """Total RAM usage (data + bss)."""
        return self.data_bytes + self.bss_bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "flash_bytes": self.flash_bytes,
            "ram_bytes": self.ram_bytes,
            **asdict(self),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SectionTotals:
        # flash_bytes/ram_bytes are derived and never read back
        return cls(
            text_bytes=int(data["text_bytes"]),
            rodata_bytes=int(data["rodata_bytes"]),
            data_bytes=int(data["data_bytes"]),
            bss_bytes=int(data["bss_bytes"]),
            flash_region_bytes=data.get("flash_region_bytes"),
            ram_region_bytes=data.get("ram_region_bytes"),
        )


@dataclass(frozen=True)
class Contribution:
    """Bytes attributed to an object file, library or section."""

    name: str
    size: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Contribution:
        return cls(name=data["name"], size=int(data["size"]))


@dataclass
class TreeNode:
    """A library (or the Objects bucket) and its object files.

    A parent's size is the sum of the children it keeps after truncation,
    so it under-reports libraries with many small members.
    """

    name: str
    size: int
    children: list[TreeNode] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TreeNode:
        return cls(
            name=data["name"],
            size=int(data["size"]),
            children=[cls.from_dict(child) for child in data.get("children", [])],
        )


@dataclass(frozen=True)
class MemoryRegion:
    name: str
    origin: str
    length: int
    used: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryRegion:
        return cls(
            name=data["name"],
            origin=data["origin"],
            length=int(data["length"]),
            used=data.get("used"),
        )


@dataclass(frozen=True)
class Finding:
    id: str
    severity: str
    value: int
    items: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            id=data["id"],
            severity=data["severity"],
            value=int(data["value"]),
            items=list(data.get("items", [])),
        )


@dataclass
class CacheMeta:
    hit: bool
    key: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheMeta:
        return cls(hit=bool(data["hit"]), key=data["key"])


@dataclass(frozen=True)
class ToolchainPaths:
    nm_path: str
    objdump_path: str
    strings_path: str

    @property
    def signature(self) -> str:
        """Identity of the tools in use, part of the cache key."""
        return f"{self.nm_path}|{self.objdump_path}|{self.strings_path}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolchainPaths:
        return cls(
            nm_path=data["nm_path"],
            objdump_path=data["objdump_path"],
            strings_path=data["strings_path"],
        )


@dataclass
class AnalysisMeta:
    binary_path: str
    map_path: str | None
    toolchain: ToolchainPaths
    cache: CacheMeta

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisMeta:
        return cls(
            binary_path=data["binary_path"],
            map_path=data.get("map_path"),
            toolchain=ToolchainPaths.from_dict(data["toolchain"]),
            cache=CacheMeta.from_dict(data["cache"]),
        )


@dataclass
class AnalysisSummary:
    section_totals: SectionTotals
    top_symbols: list[Symbol] = field(default_factory=list)
    top_objects: list[Contribution] = field(default_factory=list)
    top_libraries: list[Contribution] = field(default_factory=list)
    top_sections: list[Contribution] = field(default_factory=list)
    map_tree: list[TreeNode] = field(default_factory=list)
    memory_regions: list[MemoryRegion] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["section_totals"] = self.section_totals.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisSummary:
        return cls(
            section_totals=SectionTotals.from_dict(data["section_totals"]),
            top_symbols=[Symbol.from_dict(s) for s in data["top_symbols"]],
            top_objects=[Contribution.from_dict(c) for c in data["top_objects"]],
            top_libraries=[Contribution.from_dict(c) for c in data["top_libraries"]],
            top_sections=[Contribution.from_dict(c) for c in data["top_sections"]],
            map_tree=[TreeNode.from_dict(n) for n in data["map_tree"]],
            memory_regions=[MemoryRegion.from_dict(r) for r in data["memory_regions"]],
            findings=[Finding.from_dict(f) for f in data["findings"]],
        )


@dataclass
class AnalysisResult:
    """Everything one analysis produces; the unit stored in the cache."""

    meta: AnalysisMeta
    summary: AnalysisSummary
    sections: list[Section] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": asdict(self.meta),
            "summary": self.summary.to_dict(),
            "sections": [asdict(section) for section in self.sections],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisResult:
        return cls(
            meta=AnalysisMeta.from_dict(data["meta"]),
            summary=AnalysisSummary.from_dict(data["summary"]),
            sections=[Section.from_dict(s) for s in data["sections"]],
        )


@dataclass
class MapContributions:
    """Size attribution extracted from a linker map."""

    top_objects: list[Contribution] = field(default_factory=list)
    top_libraries: list[Contribution] = field(default_factory=list)
    top_sections: list[Contribution] = field(default_factory=list)
    map_tree: list[TreeNode] = field(default_factory=list)
    memory_regions: list[MemoryRegion] = field(default_factory=list)
