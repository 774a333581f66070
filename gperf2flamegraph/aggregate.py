from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from gperf2flamegraph.profile import StackRecord
from gperf2flamegraph.resolver import UNKNOWN_SYMBOL


def fold_stack(symbols: Iterable[str]) -> str:
    """Turn a leaf-first symbol stack into a root-first folded key."""
    frames = list(symbols)
    frames.reverse()
    while len(frames) > 1 and frames[-1] == UNKNOWN_SYMBOL:
        frames.pop()
    return ";".join(frames)


def fold_stacks(
    records: Iterable[StackRecord], sampling_period: int, to_microseconds: bool = False
) -> dict[str, int]:
    stacks: defaultdict[str, int] = defaultdict(int)
    for record in records:
        if not record.resolved_symbols:
            continue
        count = record.sample_count * sampling_period if to_microseconds else record.sample_count
        stacks[fold_stack(record.resolved_symbols)] += count
    return dict(stacks)
