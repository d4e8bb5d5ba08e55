"""
Process lifecycle management for search tool invocations.

The supervisor spawns search processes, pumps their output to callbacks on
background threads, and cancels them. Cancellation destroys a process's
output streams before signalling it, so data already buffered in the pipe
can never reach the next search's results.
"""

import itertools
import os
import signal
import subprocess
import threading
import time
from typing import Callable, List, Optional
import logging

from ..exceptions import ProcessSpawnFailure


logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

OutputCallback = Callable[[bytes], None]
ExitCallback = Callable[[Optional[int]], None]


class ManagedProcess:
    """
    One spawned search process and its output streams.

    Attributes:
        id: Monotonic identifier assigned by the supervisor
        generation: Sequence number of the request that spawned it
        killed: Set once a cancellation sweep has targeted the process
    """

    def __init__(self, process_id: int, popen: subprocess.Popen, generation: int = 0):
        self.id = process_id
        self.popen = popen
        self.generation = generation
        self.killed = False
        self._streams_destroyed = False
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def streams_destroyed(self) -> bool:
        return self._streams_destroyed

    @property
    def returncode(self) -> Optional[int]:
        return self.popen.poll()

    def is_running(self) -> bool:
        return self.popen.poll() is None

    def destroy_streams(self) -> None:
        """Stop delivering output. Takes effect before this call returns."""
        with self._lock:
            self._streams_destroyed = True

    def deliver(self, callback: OutputCallback, chunk: bytes) -> bool:
        """
        Hand a chunk to the callback unless the streams were destroyed.

        Returns:
            True if the chunk was delivered
        """
        with self._lock:
            if self._streams_destroyed:
                return False
            callback(chunk)
            return True

    def terminate(self) -> None:
        """Signal the process and any children the shell started."""
        if os.name == 'posix':
            os.killpg(self.popen.pid, signal.SIGTERM)
        else:
            self.popen.terminate()

    def confirm_dead(self, timeout: float = 0.0) -> bool:
        """Wait up to ``timeout`` seconds for the process to be reaped."""
        try:
            self.popen.wait(timeout=timeout)
            return True
        except subprocess.TimeoutExpired:
            return False

    def start_threads(self, threads: List[threading.Thread]) -> None:
        self._threads = list(threads)
        for thread in self._threads:
            thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the reader and exit threads (used in tests and teardown)."""
        for thread in self._threads:
            thread.join(timeout)

    def __repr__(self) -> str:
        return (f"ManagedProcess(id={self.id}, pid={self.pid}, generation={self.generation}, "
                f"killed={self.killed})")


class ProcessSupervisor:
    """
    Spawn, track, and cancel search processes.

    The registry keeps processes in spawn order until a cancellation sweep
    confirms they are dead. The registry lock is only held while the list
    itself is being changed.
    """

    def __init__(self, kill_grace_seconds: float = 0.1, cwd: Optional[str] = None):
        """
        Initialize the supervisor.

        Args:
            kill_grace_seconds: Time a sweep waits to confirm terminated processes
            cwd: Working directory for spawned processes
        """
        self.kill_grace_seconds = kill_grace_seconds
        self.cwd = cwd
        self._registry: List[ManagedProcess] = []
        self._registry_lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def processes(self) -> List[ManagedProcess]:
        """Snapshot of the registry in spawn order."""
        with self._registry_lock:
            return list(self._registry)

    def spawn(self,
              invocation: str,
              on_stdout: OutputCallback,
              on_stderr: OutputCallback,
              on_exit: ExitCallback,
              generation: int = 0) -> ManagedProcess:
        """
        Launch an invocation and start pumping its output.

        Returns immediately. ``on_exit`` is called only after both output
        streams have been drained, with ``None`` as the code when the
        process was cancelled.

        Args:
            invocation: Shell command string
            on_stdout: Called with each stdout chunk
            on_stderr: Called with each stderr chunk
            on_exit: Called once with the exit code
            generation: Sequence number of the owning request

        Returns:
            The registered ManagedProcess

        Raises:
            ProcessSpawnFailure: If the operating system cannot launch the command
        """
        try:
            popen = subprocess.Popen(
                invocation,
                shell=True,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                start_new_session=(os.name == 'posix'),
            )
        except (OSError, ValueError) as e:
            raise ProcessSpawnFailure(f"Failed to launch search tool: {e}") from e

        process = ManagedProcess(next(self._ids), popen, generation)
        with self._registry_lock:
            self._registry.append(process)

        readers = [
            threading.Thread(target=self._pump, args=(process, popen.stdout, on_stdout),
                             name=f"searchscope-{process.id}-stdout", daemon=True),
            threading.Thread(target=self._pump, args=(process, popen.stderr, on_stderr),
                             name=f"searchscope-{process.id}-stderr", daemon=True),
        ]
        waiter = threading.Thread(target=self._wait, args=(process, readers, on_exit),
                                  name=f"searchscope-{process.id}-exit", daemon=True)
        process.start_threads(readers + [waiter])

        logger.debug(f"Spawned {process}: {invocation}")
        return process

    def _pump(self, process: ManagedProcess, stream, callback: OutputCallback) -> None:
        try:
            while not process.streams_destroyed:
                chunk = stream.read1(CHUNK_SIZE)
                if not chunk:
                    break
                process.deliver(callback, chunk)
        except (OSError, ValueError) as e:
            logger.debug(f"Output stream of process {process.id} closed: {e}")
        finally:
            stream.close()

    def _wait(self, process: ManagedProcess, readers: List[threading.Thread],
              on_exit: ExitCallback) -> None:
        for reader in readers:
            reader.join()
        code = process.popen.wait()
        if process.killed:
            code = None
        logger.debug(f"Process {process.id} exited with code {code}")
        try:
            on_exit(code)
        except Exception as e:
            logger.error(f"Exit handler for process {process.id} failed: {e}")

    def kill_all(self) -> int:
        """
        Cancel every registered process and prune the confirmed-dead ones.

        Streams are destroyed before termination is attempted. Only processes
        that were still running are marked killed, so one that already exited
        keeps its real exit code. Failures to terminate are logged and never
        raised. Processes whose death cannot be confirmed within the grace
        period stay registered for the next sweep.

        Returns:
            Number of processes removed from the registry
        """
        entries = self.processes
        if not entries:
            return 0

        for process in entries:
            process.destroy_streams()
            if not process.is_running():
                continue
            process.killed = True
            try:
                process.terminate()
            except OSError as e:
                logger.warning(f"Failed to terminate process {process.id}: {e}")

        deadline = time.monotonic() + self.kill_grace_seconds
        dead = []
        for process in entries:
            remaining = max(0.0, deadline - time.monotonic())
            if process.confirm_dead(remaining):
                dead.append(process)
            else:
                logger.debug(f"Process {process.id} not yet confirmed dead, will retry")

        with self._registry_lock:
            self._registry = [p for p in self._registry if p not in dead]

        if dead:
            logger.debug(f"Pruned {len(dead)} search process(es)")
        return len(dead)
