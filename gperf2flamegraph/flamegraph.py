"""Folded-stack text output and the hand-off to ``flamegraph.pl``."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Mapping, Sequence

from gperf2flamegraph.errors import RendererError, ToolchainError
from gperf2flamegraph.toolchain import FLAMEGRAPH_ENV, detect_tool, run_subprocess

LOG = logging.getLogger(__name__)

MICROSECOND_ARGS = ("--countname", "us")


def format_folded(stacks: Mapping[str, int]) -> str:
    """Render ``stack count`` lines, sorted by stack, newline terminated."""
    return "".join(f"{stack} {count}\n" for stack, count in sorted(stacks.items()))


def write_atomic(path: Path, data: bytes) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise OSError(f"Failed to write {path}: {exc}. Verify disk space and permissions.") from exc


class FlamegraphData:
    def __init__(self, stacks: Mapping[str, int], to_microseconds: bool = False) -> None:
        self.data = format_folded(stacks)
        self.default_flamegraph_args = list(MICROSECOND_ARGS) if to_microseconds else []

    def write_text_output(self, path: Path) -> None:
        write_atomic(path, self.data.encode("utf-8"))

    def render_svg(self, flamegraph_args: Sequence[str] = (), renderer: str | None = None) -> bytes:
        renderer = renderer or detect_tool("flamegraph.pl", FLAMEGRAPH_ENV)
        command = [renderer, *self.default_flamegraph_args, *flamegraph_args]
        try:
            proc = run_subprocess(command, stdin=self.data.encode("utf-8"))
        except ToolchainError as exc:
            raise RendererError(f"Failed to start flamegraph.pl: {exc}") from exc
        if proc.returncode != 0:
            message = proc.stderr.decode("utf-8", errors="replace").strip()
            raise RendererError(f"{renderer} exited with status {proc.returncode}: {message}")
        return proc.stdout

    def write_outputs(
        self,
        text_output: Path | None = None,
        svg_output: Path | None = None,
        flamegraph_args: Sequence[str] = (),
    ) -> None:
        """Write the requested outputs, rendering the SVG before touching any file."""
        svg = self.render_svg(flamegraph_args) if svg_output is not None else None

        if text_output is not None:
            LOG.info("Writing text output: %s", text_output)
            self.write_text_output(text_output)
        if svg is not None:
            LOG.info("Writing SVG output: %s", svg_output)
            try:
                write_atomic(svg_output, svg)
            except OSError:
                if text_output is not None:
                    Path(text_output).unlink(missing_ok=True)
                raise
