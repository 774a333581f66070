from __future__ import annotations

import logging
from pathlib import Path

from gperf2flamegraph.aggregate import fold_stacks
from gperf2flamegraph.flamegraph import FlamegraphData
from gperf2flamegraph.memory_map import parse_memory_map
from gperf2flamegraph.profile import Profile, read_profile
from gperf2flamegraph.resolver import ResolveOptions, SymbolResolver, attach_symbols
from gperf2flamegraph.symbols import SymbolSource

LOG = logging.getLogger(__name__)


def convert_profile(
    profile: Profile,
    executable: Path,
    symbol_source: SymbolSource,
    options: ResolveOptions = ResolveOptions(),
    executable_only: bool = False,
    to_microseconds: bool = False,
    max_workers: int = 1,
) -> FlamegraphData:
    """Symbolize and fold an already decoded profile."""
    objects = parse_memory_map(profile.raw_map_text, executable, symbol_source, executable_only)
    resolver = SymbolResolver(objects)

    resolved = resolver.resolve_batch(profile.distinct_addresses(), options, max_workers=max_workers)
    attach_symbols(profile.records, resolved)

    stacks = fold_stacks(profile.records, profile.sampling_period, to_microseconds)
    LOG.info("Folded %d records into %d distinct stacks", len(profile.records), len(stacks))
    return FlamegraphData(stacks, to_microseconds)


def convert(
    executable: Path,
    profile_path: Path,
    symbol_source: SymbolSource,
    options: ResolveOptions = ResolveOptions(),
    executable_only: bool = False,
    to_microseconds: bool = False,
    max_workers: int = 1,
) -> FlamegraphData:
    LOG.info("Reading profiler result: %s", profile_path)
    profile = read_profile(profile_path)
    return convert_profile(
        profile,
        executable,
        symbol_source,
        options=options,
        executable_only=executable_only,
        to_microseconds=to_microseconds,
        max_workers=max_workers,
    )
