"""Clock used by the subscription engine.

All stored instants are naive UTC. Tests and the scheduler swap the clock
through the ``get_clock`` dependency instead of patching datetime.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_clock() -> Clock:
    return utcnow
