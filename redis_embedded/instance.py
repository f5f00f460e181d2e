import os
import re
import shutil
import subprocess
import threading
from dataclasses import dataclass
from logging import getLogger

from .exceptions import AlreadyRunning, LaunchFailure, ShutdownFailure
from .utils import StreamForwarder, make_line_writer, stderr_writer

logger = getLogger(__name__)


@dataclass(frozen=True)
class ProcessSpec:
    """What to launch: argv (executable first), the port it listens on and
    the regular expression a stdout line must fully match once it is ready.

    ``config_file``, when set, is written with ``config_text`` before every
    start and removed once the process is gone.
    """
    args: tuple
    port: int
    ready_pattern: str
    config_file: str = None
    config_text: str = None

    def __post_init__(self):
        object.__setattr__(self, 'args', tuple(str(arg) for arg in self.args))
        if not self.args:
            raise ValueError('process args should contain at least the executable path')
        if not isinstance(self.port, int):
            raise ValueError(f'port should be int and not {type(self.port).__name__}')

    @property
    def executable(self) -> str:
        return self.args[0]


def resolve_executable(path: str) -> str:
    if os.sep in path or (os.altsep and os.altsep in path):
        return os.path.abspath(path)
    found = shutil.which(path)
    if found is None:
        raise LaunchFailure(f'executable {path!r} not found on PATH')
    return os.path.abspath(found)


class ProcessInstance:
    """One OS process: start, wait for readiness, forward output, stop.

    ``start()`` blocks until a stdout line fully matches ``spec.ready_pattern``.
    stderr is forwarded to the error sink from the moment the process is
    spawned; stdout goes to the output sink once the process is ready.
    No timeouts are applied unless ``stop_timeout`` is set.
    """

    FORWARDER_JOIN_TIMEOUT = 5.0

    def __init__(self, spec: ProcessSpec, out=None, err=stderr_writer, stop_timeout=None):
        self.spec = spec
        self.out = out
        self.err = err
        self.stop_timeout = stop_timeout
        self.process = None
        self.active = False
        self.forwarders = []
        self._lock = threading.Lock()
        self._ready_regex = re.compile(spec.ready_pattern)

    @property
    def name(self) -> str:
        return f'{os.path.basename(self.spec.executable)}:{self.spec.port}'

    @property
    def pid(self):
        return self.process.pid if self.process is not None else None

    def out_to(self, sink):
        self.out = sink
        return self

    def err_to(self, sink):
        self.err = sink
        return self

    def is_active(self) -> bool:
        return self.active

    def ports(self) -> list[int]:
        return [self.spec.port]

    def start(self):
        with self._lock:
            if self.active:
                raise AlreadyRunning(
                    f'{self.name} is already running (pid {self.process.pid})'
                )

            self._write_config()
            try:
                self.process = self._launch()
            except LaunchFailure:
                self._remove_config()
                raise
            self.forwarders = [
                StreamForwarder(
                    self.process.stderr,
                    make_line_writer(self.err, prefix=f'[{self.name}] '),
                    name=f'StderrForwarder-{self.process.pid}',
                ).start()
            ]

            try:
                self._await_ready()
            except BaseException:
                self._abandon()
                raise

            # stdout changes hands here: the readiness loop is done with it and
            # the forwarder continues from the same buffered reader
            self.forwarders.append(
                StreamForwarder(
                    self.process.stdout,
                    make_line_writer(self.out, prefix=f'[{self.name}] '),
                    name=f'StdoutForwarder-{self.process.pid}',
                ).start()
            )
            self.active = True
            logger.info(f'{self.name} is ready (pid {self.process.pid})')

    def _launch(self):
        args = list(self.spec.args)
        args[0] = resolve_executable(args[0])
        cwd = os.path.dirname(args[0])
        try:
            process = subprocess.Popen(
                args,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                encoding='utf-8',
                errors='backslashreplace',
                bufsize=1,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            raise LaunchFailure(f'failed to start {self.name}: {e}') from e
        logger.debug(f'started process {process.pid} in {cwd}: {" ".join(args)}')
        return process

    def _write_config(self):
        path = self.spec.config_file
        if path is None:
            return
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'w') as f:
                f.write(self.spec.config_text or '')
        except OSError as e:
            raise LaunchFailure(f"can't write config {path} for {self.name}: {e}") from e
        logger.debug(f'wrote config {path}')

    def _remove_config(self):
        path = self.spec.config_file
        if path is None:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f'failed to remove config {path} of {self.name}: {e}')

    def _await_ready(self):
        writer = make_line_writer(self.out, prefix=f'[{self.name}] ')
        output = []
        for raw_line in iter(self.process.stdout.readline, ''):
            line = raw_line.rstrip('\r\n')
            output.append(line)
            if writer is not None:
                writer(line)
            if self._ready_regex.fullmatch(line):
                return

        joined = '\n'.join(output)
        raise LaunchFailure(
            f"can't start {self.name}: output ended before a line matched "
            f"{self.spec.ready_pattern!r}. Process output:\n{joined}",
            output=joined,
        )

    def _abandon(self):
        """Reap a process that never became ready."""
        process = self.process
        if process.poll() is None:
            logger.debug(f'killing {self.name} (pid {process.pid}) after failed start')
            process.kill()
        process.wait()
        process.stdout.close()
        self._join_forwarders()
        self._remove_config()
        self.process = None

    def stop(self):
        with self._lock:
            if not self.active:
                return

            process = self.process
            try:
                process.terminate()
                self._wait_for_exit(process)
            except (OSError, subprocess.SubprocessError) as e:
                raise ShutdownFailure(f'failed to stop {self.name}: {e}') from e

            self._join_forwarders()
            self._remove_config()
            self.active = False
            self.process = None
            logger.info(f'{self.name} stopped (exit code {process.returncode})')

    def _wait_for_exit(self, process):
        if self.stop_timeout is None:
            process.wait()
            return
        try:
            process.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                f'{self.name} (pid {process.pid}) did not exit {self.stop_timeout}s after SIGTERM, using SIGKILL'
            )
            process.kill()
            process.wait()

    def _join_forwarders(self):
        # forwarders end on their own once the exited process's pipes hit EOF
        for forwarder in self.forwarders:
            forwarder.join(timeout=self.FORWARDER_JOIN_TIMEOUT)
            if not forwarder.future.done():
                # a forked child (e.g. a background save) may still hold the pipe open
                logger.debug(f'{forwarder.name} still draining after process exit, detaching its sink')
                forwarder.stop()
                continue
            error = forwarder.future.exception()
            if error is not None:
                logger.warning(f'{forwarder.name} failed: {error}')
        self.forwarders = []

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def __repr__(self):
        return f'ProcessInstance({self.name}, active={self.active})'
