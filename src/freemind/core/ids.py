"""Random, collision-free record id allocation."""

import random
from collections.abc import Collection

from freemind.errors import IdSpaceExhaustedError

ID_MIN = 1
ID_MAX = 0xFFFF

_rng = random.Random()


def generate_id(existing: Collection[int], *, rng: random.Random | None = None) -> int:
    """Draw a uniform id from 1..65535 that is not in ``existing``.

    Rejection sampling: expected O(1) draws while the id space is sparse.

    Raises:
        IdSpaceExhaustedError: If every id is already taken.
    """
    taken = set(existing)
    if sum(1 for i in taken if ID_MIN <= i <= ID_MAX) >= ID_MAX:
        msg = f"All {ID_MAX} record ids are in use"
        raise IdSpaceExhaustedError(msg)

    draw = (rng or _rng).randint
    while True:
        candidate = draw(ID_MIN, ID_MAX)
        if candidate not in taken:
            return candidate
