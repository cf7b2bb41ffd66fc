"""Detection of an installed Java runtime to run the game with.
"""

from pathlib import Path
import subprocess
import platform
import shutil
import os

from .util import jvm_bin_filename

from typing import Optional, List


def _candidate_dirs() -> List[Path]:
    """Return the well-known directories where runtimes are installed, each runtime being
    a sub-directory of one of them.
    """

    system = platform.system()
    if system == "Darwin":
        return [Path("/Library/Java/JavaVirtualMachines")]
    elif system == "Windows":
        program_files = os.environ.get("ProgramFiles", "C:\\Program Files")
        program_files_x86 = os.environ.get("ProgramFiles(x86)", "C:\\Program Files (x86)")
        return [
            Path(program_files, "Java"),
            Path(program_files, "Eclipse Adoptium"),
            Path(program_files, "Microsoft", "jdk"),
            Path(program_files, "Zulu"),
            Path(program_files_x86, "Java"),
        ]
    else:
        return []


def _runtime_bin(runtime_dir: Path) -> Path:
    if platform.system() == "Darwin":
        return runtime_dir / "Contents" / "Home" / "bin" / "java"
    elif platform.system() == "Windows":
        return runtime_dir / "bin" / jvm_bin_filename
    else:
        return runtime_dir / "bin" / "java"


def detect_java() -> Optional[Path]:
    """Find a Java executable, trying in order the 'JAVA_HOME' environment variable, the
    'PATH', and then the platform's well-known locations.

    :return: The path of the executable, none if not found.
    """

    java_home = os.environ.get("JAVA_HOME")
    if java_home:
        java_bin = Path(java_home, "bin", jvm_bin_filename)
        if java_bin.is_file():
            return java_bin

    which = shutil.which("java")
    if which is not None:
        return Path(which)

    if platform.system() == "Darwin":
        for path in ("/usr/bin/java", "/usr/local/bin/java", "/opt/homebrew/bin/java"):
            if Path(path).is_file():
                return Path(path)

    for candidate_dir in _candidate_dirs():
        if not candidate_dir.is_dir():
            continue
        for runtime_dir in sorted(candidate_dir.iterdir()):
            java_bin = _runtime_bin(runtime_dir)
            if java_bin.is_file():
                return java_bin

    return None


def get_java_version(java_path: Path) -> Optional[str]:
    """Return the version line printed by the runtime, that is the first line of its
    standard error with '-version'. Returns none if the runtime can't be run.
    """

    try:
        completed = subprocess.run([str(java_path), "-version"], stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=10)
    except (OSError, subprocess.TimeoutExpired):
        return None

    lines = completed.stderr.decode(errors="replace").splitlines()
    return lines[0] if len(lines) else None
