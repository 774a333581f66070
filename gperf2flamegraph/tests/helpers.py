from __future__ import annotations

import struct
from typing import Iterable, Sequence


def words(*values: int) -> bytes:
    return struct.pack(f"<{len(values)}Q", *values)


def profile_bytes(
    sampling_period: int,
    records: Iterable[tuple[int, Sequence[int]]] = (),
    map_text: bytes | str = b"",
    header: Sequence[int] | None = None,
) -> bytes:
    if header is None:
        header = (0, 3, 0, sampling_period, 0)
    data = words(*header)
    for sample_count, pcs in records:
        data += words(sample_count, len(pcs), *pcs)
    data += words(0, 1, 0)
    if isinstance(map_text, str):
        map_text = map_text.encode("utf-8")
    return data + map_text


READELF_DUMP = """\
There are 31 section headers, starting at offset 0x3a40:

Section Headers:
  [Nr] Name              Type            Address          Off    Size   ES Flg Lk Inf Al
  [ 0]                   NULL            0000000000000000 000000 000000 00      0   0  0
  [12] .init             PROGBITS        0000000000401000 001000 00001b 00  AX  0   0  4
  [14] .text             PROGBITS        0000000000401040 001040 000200 00  AX  0   0 16
"""
