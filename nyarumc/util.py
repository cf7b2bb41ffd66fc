"""Global utilities used internally. The functions can be used externally but upward
compatibility is not guaranteed unless explicitly specified.
"""

from pathlib import Path
import platform
import hashlib

from typing import Optional


jvm_bin_filename = "javaw.exe" if platform.system() == "Windows" else "java"


def calc_input_sha1(input_stream, *, buffer_len: int = 8192) -> str:
    """Internal function to calculate the sha1 of an input stream.

    :param input_stream: The input stream that supports `readinto`.
    :param buffer_len: Internal buffer length, defaults to 8192
    :return: The sha1 string.
    """
    h = hashlib.sha1()
    b = bytearray(buffer_len)
    mv = memoryview(b)
    for n in iter(lambda: input_stream.readinto(mv), 0):
        h.update(mv[:n])
    return h.hexdigest()


def file_valid(path: Path, expected_sha1: str) -> bool:
    """Return true if the file exists, can be read and its SHA-1 digest matches the
    expected one (hex, case-insensitive). This never raises and has no side effect, a
    false result simply means that the file should be downloaded again.
    """
    try:
        with path.open("rb") as fp:
            return calc_input_sha1(fp) == expected_sha1.lower()
    except OSError:
        return False


def maven_name_to_path(name: str) -> str:
    """Map a maven coordinate 'group:artifact:version' to its relative file path in a
    maven repository, always with forward slashes. Coordinates with less than three
    parts are returned verbatim with the '.jar' extension.
    """
    try:
        return LibrarySpecifier.from_str(name).file_path()
    except ValueError:
        return f"{name}.jar"


class LibrarySpecifier:
    """A maven-style library specifier.
    """

    __slots__ = "group", "artifact", "version", "classifier"

    def __init__(self, group: str, artifact: str, version: str, classifier: Optional[str] = None):
        self.group = group
        self.artifact = artifact
        self.version = version
        self.classifier = classifier

    @classmethod
    def from_str(cls, s: str) -> "LibrarySpecifier":
        """Parse a library specifier string 'group:artifact:version[:classifier]'.
        """

        parts = s.split(":", 3)

        if len(parts) < 3:
            raise ValueError("invalid library specifier: too few parts")
        else:
            return LibrarySpecifier(parts[0], parts[1], parts[2], parts[3] if len(parts) == 4 else None)

    def __str__(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version}" + \
            ("" if self.classifier is None else f":{self.classifier}")

    def __eq__(self, other) -> bool:
        return isinstance(other, LibrarySpecifier) and \
            (self.group, self.artifact, self.version, self.classifier) == \
            (other.group, other.artifact, other.version, other.classifier)

    def __repr__(self) -> str:
        return f"<LibrarySpecifier {self}>"

    def __hash__(self) -> int:
        return hash((self.group, self.artifact, self.version, self.classifier))

    def file_path(self) -> str:
        """Return the standard path to store the file of this specifier.

        Specifier `com.foo.bar:artifact:version` gives
        `com/foo/bar/artifact/version/artifact-version.jar`.
        """

        file_name = f"{self.artifact}-{self.version}" + \
            ("" if self.classifier is None else f"-{self.classifier}") + \
            ".jar"

        return "/".join([*self.group.split("."), self.artifact, self.version, file_name])


def get_data_dir() -> Path:
    """Return the per-user data directory of the current platform.
    """
    home = Path.home()
    return {
        "Windows": home.joinpath("AppData", "Roaming"),
        "Darwin": home.joinpath("Library", "Application Support"),
    }.get(platform.system(), home.joinpath(".local", "share"))


# Name of the OS as used by the game's metadata rules.
minecraft_os = {
    "Windows": "windows",
    "Darwin": "osx",
}.get(platform.system(), "linux")
