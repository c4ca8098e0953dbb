"""UCI engine manager.

Handles process lifecycle and the request/response exchange with an
external UCI-compatible chess engine executable.
"""
import logging
import os
import queue
import subprocess
import threading
import time
from dataclasses import dataclass, field

from errors import EngineError
from uci_handler import UCIHandler

log = logging.getLogger("Engine")

# Sentinel pushed by the reader thread when the engine's stdout closes.
_EOF = object()


@dataclass
class SearchResult:
    """Outcome of one 'go' command.

    info holds every parsed search-progress record in arrival order, each
    a dict {'depth': int, 'pv': [moves]}.
    """

    info: list = field(default_factory=list)
    bestmove: str = None


class EngineManager:
    """Manages a UCI chess engine subprocess.

    Lifecycle:
      1. initialize()          spawns the process and performs 'uci'/'uciok'.
      2. set_option() / wait_until_ready()
      3. set_position() + search() each time a move is needed.
      4. quit()                terminates the process.

    All text sent to and received from the engine is appended to the
    transcript file (engine.log by default), so communication can be
    followed live with:
        tail -f engine.log
    """

    def __init__(self, command, log_path='engine.log',
                 handshake_timeout=10.0, search_margin=10.0):
        """
        Args:
            command:           Engine executable path, or an argv list.
            log_path:          Protocol transcript file; None disables it.
            handshake_timeout: Seconds to wait for 'uciok' / 'readyok'.
            search_margin:     Seconds allowed beyond movetime for 'bestmove'.
        """
        if isinstance(command, (list, tuple)):
            self.argv = list(command)
        else:
            self.argv = [command]
        self.handshake_timeout = handshake_timeout
        self.search_margin = search_margin
        self.process = None
        self.engine_id = {}
        self._lines = None
        self._reader = None
        self._log_path = log_path
        self._log_file = None

    @property
    def is_running(self):
        return self.process is not None and self.process.poll() is None

    # ── Process lifecycle ─────────────────────────────────────────────────────

    def initialize(self):
        """Spawn the engine executable and perform the UCI identification.

        Raises:
            EngineError: if the executable cannot be started or never
                         answers 'uciok'.
        """
        if self.process is not None:
            self.quit()

        path = self.argv[0]
        if len(self.argv) == 1 and not (os.path.isfile(path) and os.access(path, os.X_OK)):
            raise EngineError(f"Executable not found or not executable: {path}")

        self._open_log()
        try:
            self.process = subprocess.Popen(
                self.argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                bufsize=1,
            )
        except OSError as exc:
            self.process = None
            self._close_log()
            raise EngineError(f"Failed to launch '{path}': {exc}") from exc

        self._lines = queue.Queue()
        self._reader = threading.Thread(
            target=self._read_worker, args=(self.process.stdout, self._lines),
            daemon=True,
        )
        self._reader.start()

        self._send("uci")
        for line in self._read_until("uciok", self.handshake_timeout):
            parts = line.split(None, 2)
            if len(parts) == 3 and parts[0] == 'id':
                self.engine_id[parts[1]] = parts[2]
        log.info("event=engine_ready id=%s", self.engine_id.get('name', '?'))

    def set_option(self, name, value):
        """Send 'setoption name <name> value <value>'."""
        self._send(f"setoption name {name} value {value}")

    def wait_until_ready(self):
        """Block until the engine answers 'isready' with 'readyok'."""
        self._send("isready")
        self._read_until("readyok", self.handshake_timeout)

    def new_game(self):
        """Tell the engine the next position belongs to a new game."""
        self._send("ucinewgame")
        self.wait_until_ready()

    def set_position(self, fen=None, moves=None):
        """Send the position either as an explicit encoding or a replay.

        Args:
            fen:   Board encoding; when None the start position is used.
            moves: UCI moves played from that position.
        """
        self._send(UCIHandler.position_command(fen=fen, moves=moves).rstrip("\n"))

    def search(self, movetime_ms):
        """Search the current position for *movetime_ms* milliseconds.

        Returns:
            SearchResult: every parsed 'info' record plus the best move.

        Raises:
            EngineError: on process death or when 'bestmove' never arrives.
        """
        self._send(f"go movetime {int(movetime_ms)}")
        timeout = movetime_ms / 1000.0 + self.search_margin
        t0 = time.monotonic()
        result = SearchResult()
        for line in self._read_until("bestmove", timeout):
            if line.startswith("bestmove"):
                result.bestmove = UCIHandler.parse_bestmove_line(line)
                continue
            record = UCIHandler.parse_info_line(line)
            if record is not None:
                result.info.append(record)
        log.debug("Search finished in %dms: %d info record(s), bestmove=%s",
                  int((time.monotonic() - t0) * 1000), len(result.info),
                  result.bestmove)
        return result

    def quit(self):
        """Terminate the engine process.

        Safe to call even when no process is running.
        """
        proc = self.process
        self.process = None
        if proc is None:
            self._close_log()
            return

        try:
            proc.stdin.write("quit\n")
            proc.stdin.flush()
            self._log("> quit")
        except (OSError, ValueError):
            pass

        try:
            proc.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()

        try:
            proc.stdin.close()
        except (OSError, ValueError):
            pass
        self._close_log()

    # ── Low-level helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _read_worker(stream, lines):
        """Background thread: forward engine stdout lines into *lines*."""
        try:
            for line in iter(stream.readline, ''):
                lines.put(line)
        except (OSError, ValueError):
            pass
        lines.put(_EOF)

    def _send(self, cmd):
        """Write *cmd* to the engine's stdin and log it."""
        proc = self.process
        if proc is None:
            raise EngineError("Engine is not running")
        try:
            proc.stdin.write(cmd + "\n")
            proc.stdin.flush()
        except (OSError, ValueError) as exc:
            raise EngineError(f"Engine pipe closed while sending '{cmd}': {exc}") from exc
        self._log(f"> {cmd}")

    def _read_until(self, expected_token, timeout):
        """Read stdout lines until one starts with *expected_token*.

        Returns:
            list: every stripped line read, the matching one last.

        Raises:
            EngineError: on timeout or when the engine's stdout closes.
        """
        deadline = time.monotonic() + timeout
        seen = []
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise EngineError(f"Timed out waiting for '{expected_token}'")
            try:
                line = self._lines.get(timeout=remaining)
            except queue.Empty:
                raise EngineError(f"Timed out waiting for '{expected_token}'") from None
            if line is _EOF:
                code = self.process.poll() if self.process is not None else None
                raise EngineError(
                    f"Engine exited while waiting for '{expected_token}' (code {code})"
                )
            line = line.strip()
            if not line:
                continue
            self._log(f"< {line}")
            seen.append(line)
            if line.startswith(expected_token):
                return seen

    # ── Transcript ────────────────────────────────────────────────────────────

    def _open_log(self):
        if not self._log_path:
            return
        try:
            self._log_file = open(self._log_path, 'w', buffering=1)
            self._log(f"# engine:  {' '.join(self.argv)}")
            self._log(f"# started: {time.strftime('%Y-%m-%d %H:%M:%S')}")
            self._log("")
        except OSError as exc:
            log.warning("Could not open transcript %s: %s", self._log_path, exc)
            self._log_file = None

    def _log(self, text):
        """Append *text* to the transcript (no-op if it is not open)."""
        if self._log_file is not None:
            try:
                self._log_file.write(text + "\n")
            except (OSError, ValueError):
                pass

    def _close_log(self):
        """Flush and close the transcript file handle."""
        lf = self._log_file
        self._log_file = None
        if lf is not None:
            try:
                lf.write(f"\n# stopped: {time.strftime('%Y-%m-%d %H:%M:%S')}\n")
                lf.close()
            except (OSError, ValueError):
                pass
