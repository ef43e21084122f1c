"""Parsers for binutils and GNU ld text output.

The parsers are lenient: lines that do not have the expected shape are
skipped, never raised on, since tool output differs between toolchain
versions and vendors.
"""

from __future__ import annotations

import re

from .aggregate import build_tree, top_contributions
from .const import (
    MAP_DEFAULT_REGION,
    MAP_MEMORY_CONFIGURATION,
    MAP_MEMORY_HEADER,
    MAP_SYNTHETIC_TOKENS,
    TOP_LIBRARIES_LIMIT,
    TOP_OBJECTS_LIMIT,
    TOP_SECTIONS_LIMIT,
    TREE_LIBRARY_LIMIT,
    TREE_OBJECT_LIMIT,
    TREE_OBJECTS_BUCKET,
)
from .models import MapContributions, MemoryRegion, Section, Symbol, guess_section

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")
_DEC_DIGITS = re.compile(r"[0-9]+")
# archive.a(member.o), as printed for archive members in a linker map
_ARCHIVE_MEMBER = re.compile(r"^(?P<archive>[^(]*)\((?P<member>[^)]*)\)")
_PATH_SEPARATORS = re.compile(r"[/\\]")


def parse_hex(value: str) -> int | None:
    """Parse hex digits with an optional 0x prefix, None if malformed."""
    if value[:2] in ("0x", "0X"):
        value = value[2:]
    if not _HEX_DIGITS.fullmatch(value):
        return None
    return int(value, 16)


def parse_number(value: str) -> int | None:
    """Parse 0x-prefixed hex or plain decimal, None if malformed."""
    if value.startswith("0x"):
        return parse_hex(value)
    if not _DEC_DIGITS.fullmatch(value):
        return None
    return int(value)


def _basename(path: str) -> str:
    return _PATH_SEPARATORS.split(path)[-1]


def parse_section_headers(output: str) -> list[Section]:
    """Parse `objdump -h` output.

    Format:
        Idx Name          Size      VMA       LMA       File off  Algn
          0 .text         00001234  08000000  08000000  00010000  2**2
    """
    sections: list[Section] = []
    for line in output.splitlines():
        stripped = line.strip()
        # Section rows start with the index column
        if not stripped or not stripped[0].isascii() or not stripped[0].isdigit():
            continue
        parts = stripped.split()
        if len(parts) < 4:
            continue
        size = parse_hex(parts[2])
        if size is None:
            continue
        sections.append(
            Section(
                name=parts[1],
                size=size,
                virtual_address=parts[3],
                load_address=parts[4] if len(parts) > 4 else None,
            )
        )
    return sections


def parse_symbol_table(output: str) -> list[Symbol]:
    """Parse `nm -S --size-sort` output.

    Format: address size type name, e.g.
        08001234 000000a4 T main
    Symbols without a parsable, non-zero size are dropped.
    """
    symbols: list[Symbol] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        size = parse_hex(parts[1]) or 0
        if size == 0:
            continue
        kind = parts[2]
        symbols.append(
            Symbol(
                # Demangled names can contain spaces
                name=" ".join(parts[3:]),
                size=size,
                address=parts[0],
                kind=kind,
                section_guess=guess_section(kind),
            )
        )
    return symbols


def extract_library_name(token: str) -> str | None:
    """Return the archive a linker map input token came from, if any.

    `libfoo.a(bar.o)` -> `libfoo.a`, `/lib/libc.a` -> `libc.a`, `main.o` -> None
    """
    if match := _ARCHIVE_MEMBER.match(token):
        archive = match.group("archive")
        if ".a" in archive:
            return _basename(archive)
        member = match.group("member")
        if ".a" in member:
            return member
    if ".a" in token and _PATH_SEPARATORS.search(token):
        return _basename(token)
    return None


def split_library_object(token: str) -> tuple[str | None, str]:
    """Split a map input token into (archive basename, object name)."""
    if match := _ARCHIVE_MEMBER.match(token):
        return _basename(match.group("archive")), match.group("member")
    return None, _basename(token)


def _is_attributable(token: str) -> bool:
    if token.startswith("*") or token in MAP_SYNTHETIC_TOKENS:
        return False
    # Only object files and archive members count as real inputs
    return ".o" in token or ".a" in token


def parse_map_file(contents: str) -> MapContributions:
    """Attribute input section sizes of a GNU ld map to objects and libraries.

    Only single-line input section entries are understood:
        .text          0x08000100      0x1a4 build/main.o
    Entries whose section name was wrapped onto its own line are skipped.
    """
    objects: dict[str, int] = {}
    libraries: dict[str, int] = {}
    sections: dict[str, int] = {}
    tree: dict[str, dict[str, int]] = {}

    for line in contents.splitlines():
        stripped = line.lstrip()
        if not stripped.startswith("."):
            continue
        parts = stripped.split()
        if len(parts) < 4:
            continue
        size = parse_hex(parts[2]) or 0
        if size == 0:
            continue
        token = parts[-1]
        if not _is_attributable(token):
            continue

        objects[token] = objects.get(token, 0) + size

        if library_name := extract_library_name(token):
            libraries[library_name] = libraries.get(library_name, 0) + size

        section_name = parts[0]
        sections[section_name] = sections.get(section_name, 0) + size

        library, object_name = split_library_object(token)
        members = tree.setdefault(library or TREE_OBJECTS_BUCKET, {})
        members[object_name] = members.get(object_name, 0) + size

    return MapContributions(
        top_objects=top_contributions(objects, TOP_OBJECTS_LIMIT),
        top_libraries=top_contributions(libraries, TOP_LIBRARIES_LIMIT),
        top_sections=top_contributions(sections, TOP_SECTIONS_LIMIT),
        map_tree=build_tree(tree, TREE_LIBRARY_LIMIT, TREE_OBJECT_LIMIT),
        memory_regions=parse_memory_regions(contents),
    )


def _rightmost_number(parts: list[str]) -> int | None:
    for part in reversed(parts):
        if (value := parse_number(part)) is not None:
            return value
    return None


def parse_memory_regions(contents: str) -> list[MemoryRegion]:
    """Parse the "Memory Configuration" table of a GNU ld map.

    Format:
        Memory Configuration

        Name             Origin             Length             Attributes
        FLASH            0x08000000         0x00100000         xr
        RAM              0x20000000         0x00020000         xrw
        *default*        0x00000000         0xffffffff

    Some linkers add a used column; its value is the last number of a row.
    """
    regions: list[MemoryRegion] = []
    in_table = False
    header_seen = False
    has_used = False

    for line in contents.splitlines():
        stripped = line.strip()
        if stripped.startswith(MAP_MEMORY_CONFIGURATION):
            in_table = True
            continue
        if not in_table:
            continue
        if not header_seen:
            if stripped.startswith(MAP_MEMORY_HEADER):
                header_seen = True
                has_used = "used" in stripped.lower()
            continue
        if not stripped:
            break
        parts = stripped.split()
        if len(parts) < 3:
            continue
        name = parts[0]
        used = _rightmost_number(parts) if has_used else None
        if name.strip("*").lower() == MAP_DEFAULT_REGION and not used:
            continue
        regions.append(
            MemoryRegion(
                name=name,
                origin=parts[1],
                length=parse_number(parts[2]) or 0,
                used=used,
            )
        )
    return regions
