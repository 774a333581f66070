"""Objects mapped into the profiled process, as listed after the profile trailer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from gperf2flamegraph.symbols import SymbolIndex, SymbolSource, build_symbol_index

LOG = logging.getLogger(__name__)

BUILD_ID_MARKER = "build="
MAP_FIELDS = 6


@dataclass
class LoadedObject:
    start: int
    end: int
    file_offset: int
    path: Path
    is_primary_executable: bool
    symbol_index: SymbolIndex

    def __contains__(self, address: int) -> bool:
        return self.start <= address < self.end

    def translate(self, address: int) -> int:
        """Map a runtime address into the object's symbol table coordinates."""
        return address - self.start + self.file_offset + self.symbol_index.pre_link_base


@dataclass(frozen=True)
class MapLine:
    start: int
    end: int
    file_offset: int
    path: Path


def parse_map_line(line: str) -> MapLine | None:
    """Parse one executable mapping; anything else yields ``None``."""
    if line.startswith(BUILD_ID_MARKER):
        return None
    fields = line.split()
    if len(fields) != MAP_FIELDS or "x" not in fields[1]:
        return None
    addr_fields = fields[0].split("-")
    if len(addr_fields) != 2:
        return None
    try:
        start = int(addr_fields[0], 16)
        end = int(addr_fields[1], 16)
        offset = int(fields[2], 16)
    except ValueError:
        return None
    return MapLine(start, end, offset, Path(fields[5]))


def parse_memory_map(
    raw_map_text: str,
    executable: Path,
    symbol_source: SymbolSource,
    executable_only: bool = False,
) -> list[LoadedObject]:
    executable = Path(executable)
    indexes: dict[Path, SymbolIndex] = {}
    objects: list[LoadedObject] = []

    for line in raw_map_text.splitlines():
        mapping = parse_map_line(line)
        if mapping is None:
            continue

        is_executable = mapping.path.name == executable.name
        obj_path = executable if is_executable else mapping.path

        if executable_only and not is_executable:
            continue

        if not obj_path.exists():
            LOG.debug("Skipping %s: file not found", obj_path)
            continue

        index = indexes.get(obj_path)
        if index is None:
            index = build_symbol_index(obj_path, symbol_source)
            indexes[obj_path] = index

        objects.append(LoadedObject(
            start=mapping.start,
            end=mapping.end,
            file_offset=mapping.file_offset,
            path=obj_path,
            is_primary_executable=is_executable,
            symbol_index=index,
        ))

    LOG.info("Loaded symbols for %d mapped objects (%d distinct files)", len(objects), len(indexes))
    return objects
