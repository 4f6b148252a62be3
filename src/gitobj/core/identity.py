"""Author identity and clock for new commits."""

import os
import socket
from datetime import datetime, timezone
from typing import Optional

from gitobj.storage import Signature


def format_offset(seconds: int) -> str:
    """Format a UTC offset in seconds as ``+HHMM``/``-HHMM``."""
    sign = "-" if seconds < 0 else "+"
    minutes = abs(seconds) // 60
    return f"{sign}{minutes // 60:02d}{minutes % 60:02d}"


def default_signature(
    name: Optional[str] = None,
    email: Optional[str] = None,
    when: Optional[datetime] = None,
) -> Signature:
    """Build a signature from arguments, the environment and the clock.

    Name and email fall back to ``GIT_AUTHOR_NAME``/``GIT_AUTHOR_EMAIL``,
    then to the login name and ``user@hostname``.
    """
    username = os.getenv("USER") or os.getenv("USERNAME") or "unknown"
    name = name or os.getenv("GIT_AUTHOR_NAME") or username
    email = email or os.getenv("GIT_AUTHOR_EMAIL") or f"{username}@{socket.gethostname()}"

    if when is None:
        when = datetime.now(timezone.utc).astimezone()
    elif when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    offset = when.utcoffset()
    offset_seconds = int(offset.total_seconds()) if offset else 0
    return Signature(name, email, int(when.timestamp()), format_offset(offset_seconds))
