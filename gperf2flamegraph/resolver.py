from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import AbstractSet, Iterable

from gperf2flamegraph.memory_map import LoadedObject
from gperf2flamegraph.profile import StackRecord

LOG = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "???"


@dataclass(frozen=True)
class ResolveOptions:
    simplify: bool = False
    annotate_origin: bool = False


class SymbolResolver:
    """Resolves program counters against the objects of one memory map."""

    def __init__(self, objects: Iterable[LoadedObject]) -> None:
        self.objects = list(objects)

    def _resolve_object(
        self, obj: LoadedObject, addresses: AbstractSet[int], options: ResolveOptions
    ) -> dict[int, str]:
        result: dict[int, str] = {}
        for pc in addresses:
            if pc not in obj:
                continue
            sym = obj.symbol_index.floor_lookup(obj.translate(pc))
            if sym is None:
                continue
            name = sym.cleaned_name if options.simplify else sym.raw_name
            if options.annotate_origin and not obj.is_primary_executable:
                name = f"{name} [{obj.path.name}]"
            result[pc] = name
        return result

    def resolve_batch(
        self,
        addresses: AbstractSet[int],
        options: ResolveOptions = ResolveOptions(),
        max_workers: int = 1,
    ) -> dict[int, str]:
        """Resolve every distinct address once.

        Addresses outside all objects, or below an object's lowest symbol, are
        left out of the returned mapping.
        """
        resolved: dict[int, str] = {}
        if max_workers > 1 and len(self.objects) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                futures = [pool.submit(self._resolve_object, obj, addresses, options) for obj in self.objects]
                for future in futures:
                    resolved.update(future.result())
        else:
            for obj in self.objects:
                resolved.update(self._resolve_object(obj, addresses, options))

        LOG.info("Resolved %d of %d distinct addresses", len(resolved), len(addresses))
        return resolved


def attach_symbols(records: Iterable[StackRecord], resolved: dict[int, str]) -> None:
    for record in records:
        record.resolved_symbols = [resolved.get(pc, UNKNOWN_SYMBOL) for pc in record.addresses]
