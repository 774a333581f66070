"""Per-object symbol tables and symbol name cleanup."""

from __future__ import annotations

import bisect
import functools
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Protocol, Sequence

from gperf2flamegraph.errors import SymbolExtractionError

LOG = logging.getLogger(__name__)

TEXT_SECTION_PATTERN = r"\.text\s+PROGBITS\s+([0-9a-fA-F]+)\s+([0-9a-fA-F]+)"


def remove_matching_brackets(text: str, begin: str, end: str) -> str:
    result: list[str] = []
    depth = 0
    for c in text:
        if c == begin:
            depth += 1
            continue
        if c == end and depth > 0:
            depth -= 1
            continue
        if depth == 0:
            result.append(c)
    return "".join(result)


@functools.lru_cache(maxsize=None)
def cleanup_symbol(name: str) -> str:
    """Drop argument lists, ABI tags and template arguments from ``name``.

    Parentheses, square brackets and angle brackets are removed in three
    separate passes, in that order. Each pass only tracks its own bracket kind.
    Trailing colons left behind (``foo<int>::`` -> ``foo::``) are stripped.
    """
    name = remove_matching_brackets(name, "(", ")")
    name = remove_matching_brackets(name, "[", "]")
    name = remove_matching_brackets(name, "<", ">")
    return name.rstrip(":")


@dataclass(frozen=True)
class SymbolEntry:
    link_address: int
    raw_name: str

    @property
    def cleaned_name(self) -> str:
        return cleanup_symbol(self.raw_name)


class SymbolSource(Protocol):
    def list_symbols(self, path: Path, dynamic: bool) -> Sequence[str]:
        """Return raw ``address type name`` lines for the object at ``path``."""

    def code_section_bias(self, path: Path) -> int:
        """Return the object's code section VMA minus its file offset."""


class SectionHeaderParser:
    """Finds the code section in a ``readelf -W -S`` listing."""

    def __init__(self, pattern: str = TEXT_SECTION_PATTERN) -> None:
        self.pattern = re.compile(pattern)

    def pre_link_base(self, section_dump: str) -> int:
        match = self.pattern.search(section_dump)
        if not match:
            return 0
        vma = int(match.group(1), 16)
        offset = int(match.group(2), 16)
        return vma - offset


def parse_symbol_lines(lines: Iterable[str]) -> list[SymbolEntry]:
    entries: list[SymbolEntry] = []
    for line in lines:
        fields = line.split(None, 2)
        if len(fields) != 3:
            continue
        try:
            address = int(fields[0], 16)
        except ValueError:
            continue
        entries.append(SymbolEntry(address, fields[2].rstrip()))
    return entries


@dataclass
class SymbolIndex:
    entries: list[SymbolEntry]
    pre_link_base: int = 0
    addresses: list[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.entries = sorted(self.entries, key=lambda entry: entry.link_address)
        self.addresses = [entry.link_address for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def floor_lookup(self, translated: int) -> SymbolEntry | None:
        """Return the nearest symbol at or below ``translated``."""
        idx = bisect.bisect_left(self.addresses, translated)
        if idx < len(self.addresses) and self.addresses[idx] == translated:
            return self.entries[idx]
        if idx == 0:
            return None
        return self.entries[idx - 1]


def build_symbol_index(path: Path, source: SymbolSource) -> SymbolIndex:
    entries: list[SymbolEntry] = []
    for dynamic in (False, True):
        entries = parse_symbol_lines(source.list_symbols(path, dynamic))
        if entries:
            break
    if not entries:
        raise SymbolExtractionError(
            f"Failed to extract symbols from {path}. "
            "Make sure the object is not stripped or point at an unstripped copy."
        )

    index = SymbolIndex(entries, pre_link_base=source.code_section_bias(path))
    LOG.debug("Loaded %d symbols from %s (pre-link base 0x%x)", len(index), path, index.pre_link_base)
    return index


class InMemorySymbolSource:
    """Symbol source backed by prepared ``nm``/``readelf`` style text."""

    def __init__(
        self,
        symbols: Mapping[str, Sequence[str]],
        dynamic_symbols: Mapping[str, Sequence[str]] | None = None,
        section_dumps: Mapping[str, str] | None = None,
        parser: SectionHeaderParser | None = None,
    ) -> None:
        self.symbols = dict(symbols)
        self.dynamic_symbols = dict(dynamic_symbols or {})
        self.section_dumps = dict(section_dumps or {})
        self.parser = parser or SectionHeaderParser()

    def list_symbols(self, path: Path, dynamic: bool) -> Sequence[str]:
        table = self.dynamic_symbols if dynamic else self.symbols
        return table.get(str(path), [])

    def code_section_bias(self, path: Path) -> int:
        return self.parser.pre_link_base(self.section_dumps.get(str(path), ""))
