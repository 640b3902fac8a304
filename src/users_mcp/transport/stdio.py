"""Newline-delimited JSON transports over stdio.

Host side (StdioTransport):
    Reads messages from its own stdin, writes messages to its own stdout.
    stdout is reserved for protocol traffic; logs go to stderr.

Driver side (SubprocessTransport):
    Launches the host as a subprocess and talks to it through its pipes.

Wire format (UTF-8, one JSON object per line):
    -> {"jsonrpc":"2.0","id":1,"method":"tools/list","params":{}}
    <- {"jsonrpc":"2.0","id":1,"result":{"tools":[...]}}

Cross-platform considerations:
- Output always uses LF newlines
- Input accepts LF and CRLF
- A UTF-8 BOM at the start of a line is stripped
"""

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
import os
import sys
from collections.abc import AsyncIterator, Sequence
from typing import BinaryIO

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"
BOM = "\ufeff"


def _normalize_line(line: str) -> str | None:
    """Strip whitespace, line endings and BOM; None for blank lines."""
    line = line.strip()
    if line.startswith(BOM):
        line = line[1:]
    return line or None


class StdioTransport:
    """Transport over this process's stdin/stdout.

    Args:
        stdin: Binary input stream (default: sys.stdin.buffer)
        stdout: Binary output stream (default: sys.stdout.buffer)
    """

    def __init__(self, stdin: BinaryIO | None = None, stdout: BinaryIO | None = None) -> None:
        self._reader = io.TextIOWrapper(
            stdin if stdin is not None else sys.stdin.buffer,
            encoding=ENCODING,
            errors="replace",
            newline="",  # Universal newline mode - accepts LF, CRLF
        )
        self._writer = io.TextIOWrapper(
            stdout if stdout is not None else sys.stdout.buffer,
            encoding=ENCODING,
            errors="replace",
            newline=NEWLINE,
            write_through=True,
        )
        self._closed = False

    async def send(self, message: str) -> None:
        if self._closed:
            raise ConnectionError("stdio transport closed")
        self._writer.write(message + NEWLINE)
        self._writer.flush()

    async def messages(self) -> AsyncIterator[str]:
        loop = asyncio.get_running_loop()
        while not self._closed:
            # Blocking readline runs in the default executor
            line = await loop.run_in_executor(None, self._reader.readline)
            if not line:
                logger.info("stdin closed")
                break
            normalized = _normalize_line(line)
            if normalized is not None:
                yield normalized

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(Exception):
            self._writer.flush()


class SubprocessTransport:
    """Transport to a child process over its stdin/stdout.

    The child's stderr is read in the background and logged at debug
    level, so host logs never mix with protocol traffic.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        terminate_timeout: float = 5.0,
    ) -> None:
        self._command = list(command)
        self._env = env
        self._cwd = cwd
        self._terminate_timeout = terminate_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def start(self) -> None:
        """Launch the child process."""
        if self._process is not None:
            return

        env = {**os.environ, **self._env} if self._env else None
        self._process = await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self._cwd,
            env=env,
        )
        self._stderr_task = asyncio.create_task(self._read_stderr())
        logger.info(f"Launched subprocess: {' '.join(self._command)} (pid={self._process.pid})")

    async def send(self, message: str) -> None:
        if not self._process or not self._process.stdin:
            raise ConnectionError("Process not running")
        self._process.stdin.write((message + NEWLINE).encode(ENCODING))
        await self._process.stdin.drain()

    async def messages(self) -> AsyncIterator[str]:
        if not self._process or not self._process.stdout:
            raise ConnectionError("Process not running")

        while True:
            line = await self._process.stdout.readline()
            if not line:
                # EOF - process exited
                break
            normalized = _normalize_line(line.decode(ENCODING, errors="replace"))
            if normalized is None:
                continue
            # Skip non-JSON lines (e.g., output that leaked to stdout)
            if not normalized.startswith("{"):
                logger.debug(f"Skipping non-JSON line: {normalized[:50]}")
                continue
            yield normalized

    async def close(self) -> None:
        if self._stderr_task:
            self._stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._stderr_task
            self._stderr_task = None

        if self._process:
            if self._process.stdin and not self._process.stdin.is_closing():
                self._process.stdin.close()
            try:
                await asyncio.wait_for(self._process.wait(), timeout=self._terminate_timeout)
            except TimeoutError:
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=self._terminate_timeout)
                except TimeoutError:
                    self._process.kill()
                    await self._process.wait()
            logger.info(f"Subprocess exited (pid={self._process.pid})")
            self._process = None

    async def _read_stderr(self) -> None:
        if not self._process or not self._process.stderr:
            return
        while True:
            line = await self._process.stderr.readline()
            if not line:
                break
            logger.debug(f"[host stderr] {line.decode(ENCODING, errors='replace').rstrip()}")
