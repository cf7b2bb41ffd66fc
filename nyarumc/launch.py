"""Definition of the launch composer, building the command line of the installed game and
running it while streaming its logs as events.
"""

from subprocess import Popen, PIPE
from threading import Thread, Lock
from pathlib import Path
import platform
import os

from . import LAUNCHER_NAME, LAUNCHER_VERSION
from .standard import Context, Watcher, VersionMetadata, TARGET_VERSION, filter_libraries
from .fabric import read_loader_overlay
from .install import read_installed_metadata
from .nbt import write_servers_dat
from .server import DEFAULT_PORT

from typing import Optional, List, Tuple


DEFAULT_SERVER_NAME = "Nyaru Server"


class LaunchConfig:
    """Configuration of a single launch, it's not persisted.
    """

    def __init__(self, *,
        jvm_path: Path,
        player_name: str,
        player_uuid: str,
        access_token: str = "",
        max_memory_mb: int = 4096,
        main_dir: Optional[Path] = None,
        server_host: Optional[str] = None,
        server_port: Optional[int] = None,
        server_name: str = DEFAULT_SERVER_NAME,
        version: str = TARGET_VERSION,
    ) -> None:
        self.jvm_path = jvm_path
        self.player_name = player_name
        self.player_uuid = player_uuid
        self.access_token = access_token
        self.max_memory_mb = max_memory_mb
        self.context = Context(main_dir)
        self.server_host = server_host
        self.server_port = server_port
        self.server_name = server_name
        self.version = version

    def server_address(self) -> Optional[str]:
        """Return the 'host:port' address of the configured server, if any.
        """
        if self.server_host is None or not len(self.server_host):
            return None
        port = DEFAULT_PORT if self.server_port is None else self.server_port
        return f"{self.server_host}:{port}"


class GameLock:
    """The running flag of the game, only one game can run at a time for a launcher.
    Acquiring never blocks.
    """

    def __init__(self) -> None:
        self._lock = Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    def is_running(self) -> bool:
        return self._lock.locked()


class Launcher:
    """The long-lived launcher, owning the running flag of the game. The process is
    created with `process_create`, that can be overridden.
    """

    def __init__(self) -> None:
        self.lock = GameLock()

    def compose_classpath(self, config: LaunchConfig, metadata: VersionMetadata) -> Tuple[List[Path], str]:
        """Return the class path and the main class. The libraries of the active loader
        overlay come first, followed by the base libraries and the client JAR. If the
        overlay can't be read, the base game is launched unmodified.
        """

        context = config.context

        classpath = []
        for library in filter_libraries(metadata.libraries):
            if library.artifact is not None:
                classpath.append(context.libraries_dir / str(library.artifact.path))
        classpath.append(context.jar_file(config.version))

        main_class = metadata.main_class

        try:
            overlay = read_loader_overlay(context)
        except (OSError, ValueError):
            overlay = None

        if overlay is not None:
            overlay_classpath = [context.libraries_dir / library.file_path() for library in overlay.libraries]
            classpath = overlay_classpath + classpath
            main_class = overlay.main_class

        return classpath, main_class

    def compose(self, config: LaunchConfig) -> List[str]:
        """Build the full command line of the game, starting with the JVM executable.

        :raises OSError: If the version is not installed.
        :raises ValueError: If the installed metadata is invalid.
        """

        context = config.context
        metadata = read_installed_metadata(context, config.version)
        classpath, main_class = self.compose_classpath(config, metadata)

        args = [
            str(config.jvm_path),
            f"-Xmx{config.max_memory_mb}m",
            f"-Xms{config.max_memory_mb // 2}m",
            f"-Djava.library.path={context.natives_dir(config.version)}",
            f"-Dminecraft.launcher.brand={LAUNCHER_NAME}",
            f"-Dminecraft.launcher.version={LAUNCHER_VERSION}",
        ]

        if platform.system() == "Darwin":
            args.append("-XstartOnFirstThread")

        args.extend(("-cp", os.pathsep.join(map(str, classpath))))
        args.append(main_class)

        args.extend((
            "--username", config.player_name,
            "--version", config.version,
            "--gameDir", str(context.main_dir),
            "--assetsDir", str(context.assets_dir),
            "--assetIndex", metadata.asset_index.id,
            "--uuid", config.player_uuid,
            "--accessToken", config.access_token,
            "--userType", "msa",
            "--versionType", "release",
        ))

        server_address = config.server_address()
        if server_address is not None:
            args.extend(("--quickPlayMultiplayer", server_address))

        return args

    def launch(self, config: LaunchConfig, *, watcher: Optional[Watcher] = None) -> "GameProcess":
        """Launch the game in the background, its output lines and exit are reported to
        the watcher from the stream threads.

        :raises GameAlreadyRunningError: If a game launched by this launcher is running.
        """

        watcher = watcher or Watcher()

        if not self.lock.try_acquire():
            raise GameAlreadyRunningError()

        try:

            args = self.compose(config)
            context = config.context
            context.natives_dir(config.version).mkdir(parents=True, exist_ok=True)

            server_address = config.server_address()
            if server_address is not None:
                write_servers_dat(context.servers_file, config.server_name, server_address)

            watcher.handle(GameLogEvent(f"[{LAUNCHER_NAME}] starting the game...", launcher=True))
            watcher.handle(GameLogEvent(f"[{LAUNCHER_NAME}] java: {config.jvm_path}", launcher=True))

            process = self.process_create(args, context.main_dir)

        except BaseException:
            self.lock.release()
            raise

        watcher.handle(GameStartedEvent(process.pid))
        return GameProcess(self, process, watcher)

    def process_create(self, args: List[str], work_dir: Path) -> Popen:
        """Create the game's process with both output streams piped, as text.
        """
        return Popen(args, cwd=work_dir, stdout=PIPE, stderr=PIPE, bufsize=1, universal_newlines=True, encoding="utf-8", errors="replace")


class GameProcess:
    """A running game, with the threads streaming its output and waiting for its exit.
    The running flag of the launcher is released when the waiter thread terminates.

    Errors raised by the watcher while handling log lines are kept in `watcher_errors`,
    the streams are still read until their end and the exit is still reported.
    """

    def __init__(self, launcher: Launcher, process: Popen, watcher: Watcher) -> None:

        self.launcher = launcher
        self.process = process
        self.watcher = watcher
        self.watcher_errors: List[Exception] = []

        self.stdout_thread = Thread(target=self._stream_thread, name="Game Stdout Thread", args=(process.stdout, False), daemon=True)
        self.stderr_thread = Thread(target=self._stream_thread, name="Game Stderr Thread", args=(process.stderr, True), daemon=True)
        self.wait_thread = Thread(target=self._wait_thread, name="Game Wait Thread", daemon=True)

        self.stdout_thread.start()
        self.stderr_thread.start()
        self.wait_thread.start()

    def _handle_log(self, event: "GameLogEvent") -> None:
        try:
            self.watcher.handle(event)
        except Exception as error:
            self.watcher_errors.append(error)

    def _stream_thread(self, stream, error: bool) -> None:

        if stream is None:
            return

        # The pipe must be drained to the end, otherwise the game blocks on it.
        for line in iter(stream.readline, ""):
            line = line.rstrip("\r\n")
            self._handle_log(GameLogEvent(f"[WARN] {line}" if error else line, error=error))

    def _wait_thread(self) -> None:

        code = -1

        try:

            try:
                code = self.process.wait()
                # Terminated by a signal.
                if code < 0:
                    code = -1
                self._handle_log(GameLogEvent(f"[{LAUNCHER_NAME}] game exited (code: {code})", launcher=True))
            except OSError as error:
                code = -1
                self._handle_log(GameLogEvent(f"[{LAUNCHER_NAME}] error: {error}", launcher=True))

            # Output lines are all reported before the exit.
            self.stdout_thread.join()
            self.stderr_thread.join()

        finally:
            self.launcher.lock.release()
            self.watcher.handle(GameExitedEvent(code))

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_running(self) -> bool:
        return self.wait_thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the game to exit and all its events to be reported.
        """
        self.wait_thread.join(timeout)

    def kill(self) -> None:
        """Kill the game, the exit is reported as usual.
        """
        if self.process.poll() is None:
            self.process.kill()


class GameAlreadyRunningError(Exception):
    """Raised when launching while a game is already running.
    """


class GameStartedEvent:
    __slots__ = "pid",
    def __init__(self, pid: int) -> None:
        self.pid = pid


class GameLogEvent:
    """A log line of the game, error lines come from its standard error and are tagged.
    Lines originating from the launcher itself are flagged as such.
    """
    __slots__ = "line", "error", "launcher"
    def __init__(self, line: str, *, error: bool = False, launcher: bool = False) -> None:
        self.line = line
        self.error = error
        self.launcher = launcher

    def __repr__(self) -> str:
        return f"<GameLogEvent {self.line!r}>"


class GameExitedEvent:
    """The game has exited with the given code, -1 if it was terminated by a signal or
    if waiting for it failed.
    """
    __slots__ = "code",
    def __init__(self, code: int) -> None:
        self.code = code
