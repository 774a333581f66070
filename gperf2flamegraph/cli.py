#!/usr/bin/env python3
"""Convert a gperftools CPU profile into flame-graph input.

The profile's program counters are symbolized with ``nm``/``readelf`` against
the objects recorded in its memory map, folded into ``stack count`` lines and
optionally rendered to SVG with ``flamegraph.pl``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from gperf2flamegraph.converter import convert
from gperf2flamegraph.errors import Gperf2FlamegraphError
from gperf2flamegraph.resolver import ResolveOptions
from gperf2flamegraph.toolchain import BinutilsSymbolSource

LOG = logging.getLogger("gperf2flamegraph")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("exe", type=Path, help="Executable the profile was recorded from")
    parser.add_argument("prof", type=Path, help="Profiler result file")
    parser.add_argument("--svg-output", type=Path, help="Render an SVG flame graph to this path")
    parser.add_argument("--text-output", type=Path, help="Write the folded stacks to this path")
    parser.add_argument("--simplify-symbol", action="store_true", help="Strip arguments and template parameters from symbol names")
    parser.add_argument("--executable-only", action="store_true", help="Only resolve symbols of the executable, not its shared libraries")
    parser.add_argument("--annotate-libname", action="store_true", help="Append [library] to symbols from shared libraries")
    parser.add_argument("--to-microsecond", action="store_true", help="Report microseconds instead of sample counts")
    parser.add_argument(
        "--flamegraph-arg",
        dest="flamegraph_args",
        action="append",
        default=[],
        help="Extra argument passed to flamegraph.pl. May be passed multiple times.",
    )
    parser.add_argument("-j", "--jobs", type=int, default=1, help="Threads used to resolve symbols (default: %(default)s)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v info, -vv debug)")
    args = parser.parse_args(argv)
    if args.jobs < 1:
        parser.error("--jobs must be at least 1")
    return args


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = parse_args(argv)
    configure_logging(args.verbose)
    LOG.info("parse params: %s", args)

    options = ResolveOptions(simplify=args.simplify_symbol, annotate_origin=args.annotate_libname)
    try:
        data = convert(
            args.exe,
            args.prof,
            BinutilsSymbolSource(),
            options=options,
            executable_only=args.executable_only,
            to_microseconds=args.to_microsecond,
            max_workers=args.jobs,
        )
        if args.text_output is None and args.svg_output is None:
            sys.stdout.write(data.data)
        else:
            data.write_outputs(args.text_output, args.svg_output, args.flamegraph_args)
    except (Gperf2FlamegraphError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    LOG.info("Finished processing profiler result")
    return 0


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
