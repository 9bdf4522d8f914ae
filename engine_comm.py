"""Subprocess management and the UCI client used by the analysis session."""

from __future__ import annotations

import queue
import subprocess
import sys
import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Sequence

from uci_protocol import BestMove, EngineEvent, Id, OptionAdvertised, Ready, parse_line
from utils import ReportingLevel, info_text, received_text, report, sending_text, warning_text

DEFAULT_HANDSHAKE_TIMEOUT = 5.0
_HANDSHAKE_POLL = 0.1


class EngineCommError(Exception):
    """Base class for failures talking to an engine process."""


class LaunchError(EngineCommError):
    pass


class HandshakeTimeout(EngineCommError):
    pass


class EngineIOError(EngineCommError):
    pass


def build_command(path: str) -> List[str]:
    if path.endswith(".py"):
        return [sys.executable, path]
    return [path]


class EngineProcess:
    """Owns the engine subprocess and the write side of its pipe."""

    def __init__(self, path: str, *, workdir: Optional[str] = None) -> None:
        self.path = path
        try:
            self._proc = subprocess.Popen(
                build_command(path),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                cwd=workdir,
            )
        except OSError as exc:
            raise LaunchError(f"Failed to start engine at: {path} ({exc})") from exc

    @property
    def stdout(self):
        return self._proc.stdout

    def send(self, command: str) -> None:
        if self._proc.stdin is None or self._proc.stdin.closed:
            raise EngineIOError(f"Engine input is closed: {self.path}")
        try:
            self._proc.stdin.write(command + "\n")
            self._proc.stdin.flush()
        except (BrokenPipeError, OSError, ValueError) as exc:
            raise EngineIOError(f"Failed to write to engine: {exc}") from exc

    def readline(self) -> str:
        if not self._proc.stdout:
            return ""
        try:
            return self._proc.stdout.readline()
        except (OSError, ValueError):
            return ""

    def poll(self) -> Optional[int]:
        return self._proc.poll()

    def shutdown(self, timeout: float = 2.0) -> None:
        try:
            self.send("quit")
        except EngineIOError:
            pass
        if self._proc.stdin:
            try:
                self._proc.stdin.close()
            except OSError:
                pass
        try:
            self._proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                self._proc.kill()
                try:
                    self._proc.wait(timeout=1.0)
                except subprocess.TimeoutExpired:
                    pass


def engine_output_processor(
    output_queue,
    proc,
    on_line: Optional[Callable[[str], None]] = None,
) -> None:
    """Reader loop: decode each line from ``proc`` and queue the resulting event.

    Returns quietly at end of stream. Nothing is queued to signal that.
    """
    while True:
        output = proc.readline()
        if output == "":
            break
        output = output.strip()
        if not output:
            continue
        if on_line is not None:
            on_line(output)
        event = parse_line(output)
        if event is not None:
            output_queue.put(event)


def _line_echo(level: ReportingLevel) -> Optional[Callable[[str], None]]:
    # Must not close over the client: the reader thread can outlive it.
    if level < ReportingLevel.VERBOSE:
        return None
    return lambda line: print(received_text(line))


class EngineState(Enum):
    CREATED = "created"
    HANDSHAKING = "handshaking"
    IDLE = "idle"
    ANALYZING = "analyzing"
    CLOSED = "closed"


class UciEngine:
    """Handshake-checked UCI client over one engine subprocess.

    Construction blocks until the engine answers ``uciok`` (bounded by
    ``handshake_timeout``). After that every method is non-blocking apart from
    :meth:`wait_ready` and :meth:`quit`.
    """

    def __init__(
        self,
        path: str,
        *,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        reporting_level: ReportingLevel = ReportingLevel.QUIET,
        process_factory: Callable[[str], EngineProcess] = EngineProcess,
    ) -> None:
        self.path = path
        self.name: Optional[str] = None
        self.author: Optional[str] = None
        self.options: List[str] = []
        self.reporting_level = reporting_level
        self._analyzing = False
        self._closed = True
        self._state = EngineState.CREATED
        self._events: "queue.SimpleQueue[EngineEvent]" = queue.SimpleQueue()

        self._process = process_factory(path)
        self._closed = False
        self._reader = threading.Thread(
            target=engine_output_processor,
            args=(self._events, self._process, _line_echo(reporting_level)),
            name="uci-reader",
            daemon=True,
        )
        self._reader.start()

        self._state = EngineState.HANDSHAKING
        try:
            self.send_command("uci")
            self._wait_for_ready(handshake_timeout)
        except EngineCommError:
            self._process.shutdown()
            self._closed = True
            self._state = EngineState.CLOSED
            raise
        self._state = EngineState.IDLE

        label = self.name or path
        report(info_text(f"Engine ready: {label}"), self.reporting_level)

    def __enter__(self) -> "UciEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.quit()

    def __del__(self) -> None:
        if getattr(self, "_closed", True):
            return
        self.quit()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def analyzing(self) -> bool:
        return self._analyzing

    def is_analyzing(self) -> bool:
        return self._analyzing

    def is_alive(self) -> bool:
        return not self._closed and self._process.poll() is None

    def send_command(self, command: str) -> None:
        report(sending_text(command), self.reporting_level, ReportingLevel.VERBOSE)
        self._process.send(command)

    def _wait_for_ready(self, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise HandshakeTimeout(
                    f"Timeout waiting for engine to be ready after {timeout:g}s: {self.path}"
                )
            try:
                event = self._events.get(timeout=min(_HANDSHAKE_POLL, remaining))
            except queue.Empty:
                if not self._reader.is_alive() and self._events.empty():
                    raise HandshakeTimeout(
                        f"Engine output closed before it was ready: {self.path}"
                    )
                continue
            if isinstance(event, Ready):
                return
            if isinstance(event, Id):
                if event.name is not None:
                    self.name = event.name
                if event.author is not None:
                    self.author = event.author
            elif isinstance(event, OptionAdvertised):
                self.options.append(event.name)

    def wait_ready(self, timeout: float = DEFAULT_HANDSHAKE_TIMEOUT) -> None:
        """Send ``isready`` and block until ``readyok`` or the timeout.

        Events other than ``Ready`` that arrive meanwhile are discarded.
        """
        self.send_command("isready")
        self._wait_for_ready(timeout)

    def set_option(self, name: str, value) -> None:
        self.send_command(f"setoption name {name} value {value}")

    def set_position(self, fen: Optional[str] = None, moves: Sequence[str] = ()) -> None:
        command = f"position fen {fen}" if fen else "position startpos"
        if moves:
            command += " moves " + " ".join(moves)
        self.send_command(command)

    def new_game(self) -> None:
        self.send_command("ucinewgame")

    def go_depth(self, depth: int) -> None:
        self._analyzing = True
        self._state = EngineState.ANALYZING
        self.send_command(f"go depth {depth}")

    def go_infinite(self) -> None:
        self._analyzing = True
        self._state = EngineState.ANALYZING
        self.send_command("go infinite")

    def stop(self) -> None:
        if self._analyzing:
            self.send_command("stop")
            self._analyzing = False
            self._state = EngineState.IDLE

    def try_recv(self) -> Optional[EngineEvent]:
        try:
            event = self._events.get_nowait()
        except queue.Empty:
            return None
        if isinstance(event, BestMove):
            self._analyzing = False
            if self._state is EngineState.ANALYZING:
                self._state = EngineState.IDLE
        return event

    def quit(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._analyzing = False
        self._state = EngineState.CLOSED
        try:
            self._process.shutdown()
        except Exception as exc:  # pragma: no cover - best effort during teardown
            report(warning_text(f"Engine shutdown failed: {exc}"), self.reporting_level)
        self._reader.join(timeout=1.0)

    close = quit
