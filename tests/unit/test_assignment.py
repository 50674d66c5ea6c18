"""Unit tests for marketing assignment and branch selection"""

import pytest
import uuid
from fintara_gateway.domain.assignment import nearest_branch, select_least_loaded
from fintara_gateway.domain.exceptions import NoAgentAvailableError


def test_least_loaded_agent_wins_and_ties_go_to_first_listed():
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    assert select_least_loaded([a, b, c], {a: 3, b: 1, c: 1}) == b


def test_agents_without_open_requests_count_as_zero():
    a, b = uuid.uuid4(), uuid.uuid4()

    assert select_least_loaded([a, b], {a: 2}) == b


def test_all_idle_picks_first_agent():
    a, b = uuid.uuid4(), uuid.uuid4()

    assert select_least_loaded([a, b], {}) == a


def test_no_agents():
    with pytest.raises(NoAgentAvailableError):
        select_least_loaded([], {})


def test_nearest_branch_by_great_circle_distance():
    jakarta, bandung, surabaya = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    branches = [
        (jakarta, -6.2088, 106.8456),
        (bandung, -6.9175, 107.6191),
        (surabaya, -7.2575, 112.7521),
    ]

    # Bogor is closer to Jakarta than to Bandung
    assert nearest_branch(branches, -6.5971, 106.8060) == jakarta
    assert nearest_branch(branches, -7.0, 107.5) == bandung


def test_nearest_branch_none_available():
    with pytest.raises(NoAgentAvailableError):
        nearest_branch([], -6.2, 106.8)
