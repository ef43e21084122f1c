"""Constants for firmware size analysis."""

from enum import StrEnum

# Bump when the shape of cached artifacts or the analysis semantics change
CACHE_VERSION = "v3"
# Stands in for the map hash when no map file is analyzed
CACHE_NO_MAP = "none"
CACHE_ANALYSIS_PREFIX = "analysis"
CACHE_SYMBOLS_PREFIX = "symbols"

# Section names summed into the section totals
SECTION_TEXT = ".text"
SECTION_RODATA = ".rodata"
SECTION_DATA = ".data"
SECTION_BSS = ".bss"

# Maps the nm symbol type letter to the section it most likely lives in
SYMBOL_KIND_TO_SECTION = {
    "T": "text",
    "t": "text",
    "R": "rodata",
    "r": "rodata",
    "D": "data",
    "d": "data",
    "G": "data",
    "g": "data",
    "S": "data",
    "s": "data",
    "B": "bss",
    "b": "bss",
}
SECTION_GUESS_OTHER = "other"

# Top-N caps for the summary lists
TOP_SYMBOLS_LIMIT = 50
TOP_OBJECTS_LIMIT = 20
TOP_LIBRARIES_LIMIT = 12
TOP_SECTIONS_LIMIT = 8
TREE_LIBRARY_LIMIT = 20
TREE_OBJECT_LIMIT = 40
FINDING_ITEMS_LIMIT = 5

# Tree bucket for plain object files that did not come out of an archive
TREE_OBJECTS_BUCKET = "Objects"

# Linker map source tokens that are linker-synthesized rather than real inputs
MAP_SYNTHETIC_TOKENS = frozenset(["*fill*", "*(COMMON)"])

MAP_MEMORY_CONFIGURATION = "Memory Configuration"
MAP_MEMORY_HEADER = "Name"
MAP_DEFAULT_REGION = "default"

# Memory region name fragments used to total region usage
FLASH_REGION_PATTERNS = frozenset(["flash", "rom"])
RAM_REGION_PATTERNS = frozenset(["ram", "sram"])

# Symbol kinds that occupy RAM (initialized data and bss)
RAM_SYMBOL_KINDS = frozenset(["B", "b", "D", "d"])

# Name fragments pointing at soft-float and float printf support code
FLOAT_SYMBOL_PATTERNS = ("float", "dtoa", "aeabi_f", "aeabi_d")

# C++ exception unwinding tables
EXIDX_SECTION_PATTERNS = (".ARM.exidx", ".ARM.extab")


class FindingId(StrEnum):
    RAM_PRESSURE = "RAM_PRESSURE"
    FLOAT_BLOAT = "FLOAT_BLOAT"
    EXIDX = "EXIDX"
    STRING_COUNT = "STRING_COUNT"


class Severity(StrEnum):
    INFO = "info"
    WARN = "warn"


class SortKey(StrEnum):
    NAME = "name"
    SIZE = "size"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"
