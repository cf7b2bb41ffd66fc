"""Global utilities for the CLI.
"""

from uuid import uuid4

from typing import Optional, Tuple


def format_number(n: float) -> str:
    """Return a number with suffix k, M, G or nothing.
    The string is at most 7 chars unless the size exceed 1 T.
    """
    if n < 1000:
        return f"{int(n)}"
    elif n < 1000000:
        return f"{(int(n / 100) / 10):.1f} k"
    elif n < 1000000000:
        return f"{(int(n / 100000) / 10):.1f} M"
    else:
        return f"{(int(n / 100000000) / 10):.1f} G"


def offline_identity(username: Optional[str], uuid: Optional[str]) -> Tuple[str, str]:
    """Return the player name and UUID to use for an offline session, missing parts are
    derived from a random UUID.
    """
    if uuid is None:
        uuid = uuid4().hex
    else:
        uuid = uuid.replace("-", "")
    if username is None:
        username = uuid[:8]
    return username, uuid
