"""Decoder for the binary CPU profiles written by gperftools.

The file is a stream of little-endian 64-bit words::

    header   0, 3, 0, <sampling period in us>, 0
    record   <sample count>, <N>, <pc 1> ... <pc N>      (repeated)
    trailer  0, 1, 0
    <text of /proc/self/maps at the time the profile was written>

Program counters inside a record are stored leaf first.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path

from gperf2flamegraph.errors import FormatError, TruncatedProfileError
from gperf2flamegraph.text_encoding import decode_best_effort

LOG = logging.getLogger(__name__)

WORD = struct.Struct("<Q")
HEADER = struct.Struct("<5Q")
RECORD_HEAD = struct.Struct("<2Q")

HEADER_COUNT = 0
HEADER_SLOTS = 3
HEADER_VERSION = 0
HEADER_PADDING = 0
TRAILER_PCS = 1


@dataclass
class StackRecord:
    sample_count: int
    addresses: tuple[int, ...]
    resolved_symbols: list[str] | None = None


@dataclass
class Profile:
    sampling_period: int
    records: list[StackRecord] = field(default_factory=list)
    raw_map_text: str = ""

    def distinct_addresses(self) -> set[int]:
        pcs: set[int] = set()
        for record in self.records:
            pcs.update(record.addresses)
        return pcs


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def _take(self, size: int, what: str) -> bytes:
        left = len(self.data) - self.pos
        if size > left:
            raise TruncatedProfileError(
                f"profile truncated while reading {what} at byte offset {self.pos} "
                f"(needed {size} bytes, {left} left)"
            )
        chunk = self.data[self.pos:self.pos + size]
        self.pos += size
        return chunk

    def unpack(self, fmt: struct.Struct, what: str) -> tuple[int, ...]:
        return fmt.unpack(self._take(fmt.size, what))

    def words(self, count: int, what: str) -> tuple[int, ...]:
        # count comes from the file; size is checked before any unpacking
        chunk = self._take(count * WORD.size, what)
        return tuple(value for (value,) in WORD.iter_unpack(chunk))

    def rest(self) -> bytes:
        return self.data[self.pos:]


def _check_header(count: int, slots: int, version: int, padding: int) -> None:
    expected = (
        ("count", count, HEADER_COUNT),
        ("slot count", slots, HEADER_SLOTS),
        ("version", version, HEADER_VERSION),
        ("padding", padding, HEADER_PADDING),
    )
    for name, actual, wanted in expected:
        if actual != wanted:
            raise FormatError(f"invalid header: {name} is {actual}, expected {wanted}")


def decode(data: bytes) -> Profile:
    """Decode a complete profile held in memory."""
    reader = _Reader(data)
    count, slots, version, sampling_period, padding = reader.unpack(HEADER, "header")
    _check_header(count, slots, version, padding)

    records: list[StackRecord] = []
    while True:
        sample_count, num_pcs = reader.unpack(RECORD_HEAD, f"record {len(records)}")
        if sample_count == 0:
            if num_pcs != TRAILER_PCS:
                raise FormatError(
                    f"invalid trailer: expected {TRAILER_PCS} trailing word, got {num_pcs}"
                )
            reader.words(TRAILER_PCS, "trailer")
            break
        pcs = reader.words(num_pcs, f"addresses of record {len(records)}")
        records.append(StackRecord(sample_count=sample_count, addresses=pcs))

    LOG.info("Decoded %d stack records (sampling period %d us)", len(records), sampling_period)
    return Profile(
        sampling_period=sampling_period,
        records=records,
        raw_map_text=decode_best_effort(reader.rest()),
    )


def read_profile(path: Path) -> Profile:
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError as exc:
        raise FileNotFoundError(
            f"Failed to open profiler result file {path}: file not found. Verify the path before re-running."
        ) from exc
    except OSError as exc:
        raise OSError(f"Failed to read profiler result file {path}: {exc}") from exc

    try:
        return decode(data)
    except FormatError as exc:
        raise type(exc)(f"{path}: {exc}") from exc
