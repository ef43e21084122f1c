"""In-memory symbol table of the latest analysis, with paging and PC lookup."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import logging
import re
import threading

from fwsize.const import DEFAULT_PAGE_SIZE
from fwsize.core import InvalidAddressError, SymbolStoreEmptyError

from .const import SortKey, SortOrder
from .models import Symbol

_LOGGER = logging.getLogger(__name__)

_HEX_ADDRESS = re.compile(r"[0-9a-f]+")
_DEC_ADDRESS = re.compile(r"[0-9]+")


def parse_pc_address(value: str) -> int:
    """Parse a user supplied address.

    `0x` means hex, so does any a-f digit without a prefix; otherwise the
    value is decimal. Hex digits are case-insensitive.

    Raises:
        InvalidAddressError: The value is empty or not a number
    """
    trimmed = value.strip()
    if not trimmed:
        raise InvalidAddressError("Address is required.")
    lowered = trimmed.lower()
    if lowered.startswith("0x"):
        digits, pattern, base = lowered[2:], _HEX_ADDRESS, 16
    elif any("a" <= char <= "f" for char in lowered):
        digits, pattern, base = lowered, _HEX_ADDRESS, 16
    else:
        digits, pattern, base = trimmed, _DEC_ADDRESS, 10
    if not pattern.fullmatch(digits):
        raise InvalidAddressError("Invalid address.")
    return int(digits, base)


def parse_hex_address(value: str | None) -> int | None:
    """Parse an nm style hex address, None if missing or malformed."""
    if value is None:
        return None
    digits = value.strip()
    if digits.startswith("0x"):
        digits = digits[2:]
    if not _HEX_ADDRESS.fullmatch(digits.lower()):
        return None
    return int(digits, 16)


@dataclass
class SymbolPage:
    total: int
    items: list[Symbol] = field(default_factory=list)


@dataclass(frozen=True)
class PcLookupSymbol:
    name: str
    address: str
    size: int
    kind: str
    section_guess: str
    # Bytes from the symbol start to the looked up address
    offset: int


@dataclass
class PcLookupResult:
    address: str
    symbol: PcLookupSymbol | None = None


class SymbolStore:
    """Every symbol of the most recent analysis.

    The contents are an immutable tuple that is swapped as a whole, so a
    reader never sees a partially replaced table.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._symbols: tuple[Symbol, ...] = ()

    def replace(self, symbols: Iterable[Symbol]) -> None:
        new_symbols = tuple(symbols)
        with self._lock:
            self._symbols = new_symbols
        _LOGGER.debug("Symbol store now holds %d symbols", len(new_symbols))

    def snapshot(self) -> tuple[Symbol, ...]:
        with self._lock:
            return self._symbols

    def __len__(self) -> int:
        return len(self.snapshot())

    def list_symbols(
        self,
        query: str | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort: str | None = None,
        order: str | None = None,
    ) -> SymbolPage:
        """Return one page of symbols matching a name filter.

        Args:
            query: Case-insensitive substring of the name, blank matches all
            page: 1-based page number, values below 1 mean the first page
            page_size: Symbols per page, values below 1 mean 1
            sort: "name" sorts by name, anything else by size
            order: "desc" (the default) or ascending for anything else

        Returns:
            The total number of matches and the requested slice of them
        """
        symbols = self.snapshot()
        if not symbols:
            return SymbolPage(total=0)

        items = list(symbols)
        if query and (needle := query.strip().lower()):
            items = [symbol for symbol in items if needle in symbol.name.lower()]

        if sort == SortKey.NAME:
            items.sort(key=lambda symbol: symbol.name)
        else:
            items.sort(key=lambda symbol: symbol.size)
        if (order or SortOrder.DESC) == SortOrder.DESC:
            items.reverse()

        page = max(page, 1)
        page_size = max(page_size, 1)
        start = (page - 1) * page_size
        return SymbolPage(total=len(items), items=items[start : start + page_size])

    def lookup_pc(self, address: str) -> PcLookupResult:
        """Find the symbol whose range contains an address.

        When ranges overlap, the symbol starting closest below the address
        wins. No containing symbol is not an error.

        Raises:
            InvalidAddressError: The address cannot be parsed
            SymbolStoreEmptyError: No analysis has populated the store
        """
        value = parse_pc_address(address)
        symbols = self.snapshot()
        if not symbols:
            raise SymbolStoreEmptyError("Symbol cache is empty. Run analysis first.")

        best: tuple[int, Symbol] | None = None
        for symbol in symbols:
            start = parse_hex_address(symbol.address)
            if start is None or symbol.size == 0:
                continue
            if not start <= value < start + symbol.size:
                continue
            if best is None or start > best[0]:
                best = (start, symbol)

        if best is None:
            return PcLookupResult(address=address)

        start, symbol = best
        return PcLookupResult(
            address=address,
            symbol=PcLookupSymbol(
                name=symbol.name,
                address=symbol.address or f"{start:x}",
                size=symbol.size,
                kind=symbol.kind,
                section_guess=symbol.section_guess,
                offset=value - start,
            ),
        )
