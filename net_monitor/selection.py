"""Measurement server selection."""

from __future__ import annotations

import random
from typing import Iterable, Optional, Sequence

from .errors import NoEndpointAvailable
from .models import Server


def select_endpoint(
    endpoints: Sequence[Server],
    preferred: Iterable[str] = (),
    rng: Optional[random.Random] = None,
) -> Server:
    """Pick a server, restricted to ``preferred`` names when any of them is listed.

    Servers are drawn uniformly at random from the candidates to spread load
    across the community hosted servers. When no listed server matches the
    preference list every server is a candidate.
    """
    if not endpoints:
        raise NoEndpointAvailable("did not find any matching server")

    wanted = set(preferred)
    candidates = [server for server in endpoints if server.name in wanted] if wanted else []
    if not candidates:
        candidates = list(endpoints)
    return (rng or random).choice(candidates)
