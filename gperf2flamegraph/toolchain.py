"""Locate and run the binutils and FlameGraph tools the converter relies on."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from gperf2flamegraph.errors import ToolFailedError, ToolNotFoundError
from gperf2flamegraph.symbols import SectionHeaderParser

LOG = logging.getLogger(__name__)

NM_ENV = "GPERF2FLAMEGRAPH_NM"
READELF_ENV = "GPERF2FLAMEGRAPH_READELF"
FLAMEGRAPH_ENV = "FLAMEGRAPH_PL"

NM_ARGS = ["-C", "-n", "--defined-only", "--no-recurse-limit"]
READELF_ARGS = ["-W", "-S"]


def detect_tool(name: str, env_var: str) -> str:
    """Return the command for ``name``, honouring an ``env_var`` override."""
    candidate = os.environ.get(env_var) or name
    path = Path(candidate)
    if path.is_file():
        return str(path)
    found = shutil.which(candidate)
    if found:
        return found
    raise ToolNotFoundError(
        f"Unable to locate '{candidate}' in PATH. Install it or set {env_var} to its location."
    )


def run_subprocess(command: Sequence[str], stdin: bytes | None = None) -> subprocess.CompletedProcess[bytes]:
    LOG.debug("Running %s", " ".join(command))
    try:
        proc = subprocess.Popen(
            command,
            stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise ToolNotFoundError(f"Failed to execute {command[0]}: {exc}") from exc
    except OSError as exc:
        raise ToolFailedError(f"Failed to execute {command[0]}: {exc}") from exc

    stdout, stderr = proc.communicate(stdin)
    return subprocess.CompletedProcess(list(command), proc.returncode, stdout, stderr)


class BinutilsSymbolSource:
    """Reads symbols with ``nm`` and section headers with ``readelf``."""

    def __init__(
        self,
        nm: str | None = None,
        readelf: str | None = None,
        parser: SectionHeaderParser | None = None,
    ) -> None:
        self.nm = nm or detect_tool("nm", NM_ENV)
        self.readelf = readelf or detect_tool("readelf", READELF_ENV)
        self.parser = parser or SectionHeaderParser()

    def _output(self, command: list[str]) -> str:
        proc = run_subprocess(command)
        text = proc.stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            message = proc.stderr.decode("utf-8", errors="replace").strip()
            if not text.strip():
                raise ToolFailedError(
                    f"{command[0]} exited with status {proc.returncode} for {command[-1]}: {message}"
                )
            LOG.warning("%s exited with status %d for %s: %s", command[0], proc.returncode, command[-1], message)
        return text

    def list_symbols(self, path: Path, dynamic: bool) -> list[str]:
        command = [self.nm, *NM_ARGS]
        if dynamic:
            command.append("-D")
        command.append(str(path))
        try:
            return self._output(command).splitlines()
        except ToolFailedError as exc:
            # nm fails outright on objects without the requested table.
            LOG.debug("%s", exc)
            return []

    def code_section_bias(self, path: Path) -> int:
        try:
            dump = self._output([self.readelf, *READELF_ARGS, str(path)])
        except ToolFailedError as exc:
            LOG.warning("%s; assuming no load bias for %s", exc, path)
            return 0
        return self.parser.pre_link_base(dump)
