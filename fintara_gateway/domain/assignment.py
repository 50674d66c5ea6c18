"""Marketing agent load balancing and branch selection"""

import uuid
from typing import Dict, Iterable, Optional, Sequence, Tuple

from fintara_gateway.domain.exceptions import NoAgentAvailableError
from fintara_gateway.utils.geo import haversine_km


def select_least_loaded(agent_ids: Sequence[uuid.UUID], open_counts: Dict[uuid.UUID, int]) -> uuid.UUID:
    """
    Pick the marketing agent with the fewest open requests.

    Ties go to the agent listed first; agents missing from open_counts carry
    no load. The counts are a point-in-time snapshot, so two concurrent
    creations may land on the same agent.

    Example:
        agents [A, B, C], counts {A: 3, B: 1, C: 1} -> B
    """
    if not agent_ids:
        raise NoAgentAvailableError("No marketing agent is available in this branch")

    chosen = agent_ids[0]
    lowest = open_counts.get(chosen, 0)
    for agent_id in agent_ids[1:]:
        load = open_counts.get(agent_id, 0)
        if load < lowest:
            chosen, lowest = agent_id, load
    return chosen


def nearest_branch(
    branches: Iterable[Tuple[uuid.UUID, float, float]],
    latitude: float,
    longitude: float,
) -> uuid.UUID:
    """
    Return the id of the branch closest to (latitude, longitude).

    `branches` yields (branch_id, latitude, longitude); callers pass only
    branches that have marketing staff.
    """
    best: Optional[uuid.UUID] = None
    best_distance = float("inf")
    for branch_id, branch_lat, branch_lon in branches:
        distance = haversine_km(latitude, longitude, branch_lat, branch_lon)
        if distance < best_distance:
            best, best_distance = branch_id, distance

    if best is None:
        raise NoAgentAvailableError("No nearby branch with marketing staff")
    return best
