"""
Tournament lifecycle
signup -> draw -> groups -> knockout -> completed

Each engine operation declares the statuses it may run in and the status a
successful run moves the tournament to. Out of order calls are rejected
before anything is written.
"""

import logging
from typing import Dict, Optional, Set, Tuple

from models import TournamentStatus
from tournament_errors import LifecycleError

logger = logging.getLogger(__name__)

S = TournamentStatus

# operation -> (allowed statuses, status after success or None)
OPERATION_RULES: Dict[str, Tuple[Set[TournamentStatus], Optional[TournamentStatus]]] = {
    "set_enrollments": ({S.SIGNUP, S.DRAW}, S.SIGNUP),
    "compute_tiers": ({S.SIGNUP, S.DRAW}, None),
    "draw_groups": ({S.SIGNUP, S.DRAW}, S.DRAW),
    "build_group_rounds_and_fixtures": ({S.DRAW, S.GROUPS}, S.GROUPS),
    "assign_fields_per_round": ({S.GROUPS}, None),
    "assign_referees_global": ({S.GROUPS}, None),
    "record_group_result": ({S.GROUPS}, None),
    "recompute_standings": ({S.GROUPS, S.KNOCKOUT, S.COMPLETED}, None),
    "generate_knockout": ({S.GROUPS, S.KNOCKOUT}, S.KNOCKOUT),
    "record_ko_result": ({S.KNOCKOUT, S.COMPLETED}, None),
    "progress_if_round_complete": ({S.KNOCKOUT, S.COMPLETED}, None),
    "set_fixture_referee": ({S.GROUPS, S.KNOCKOUT}, None),
}

# Valid direct transitions of the status field itself
TRANSITIONS: Dict[TournamentStatus, Set[TournamentStatus]] = {
    S.SIGNUP: {S.SIGNUP, S.DRAW},
    S.DRAW: {S.SIGNUP, S.DRAW, S.GROUPS},
    S.GROUPS: {S.GROUPS, S.KNOCKOUT},
    S.KNOCKOUT: {S.KNOCKOUT, S.COMPLETED},
    S.COMPLETED: {S.COMPLETED},
}


def is_valid_transition(current: TournamentStatus, target: TournamentStatus) -> bool:
    return target in TRANSITIONS.get(current, set())


def require_status(tournament: Dict, operation: str) -> TournamentStatus:
    """Raise LifecycleError unless the operation may run in the current status"""
    allowed, _ = OPERATION_RULES[operation]
    current = TournamentStatus(tournament.get("status", S.SIGNUP))
    if current not in allowed:
        allowed_names = ", ".join(sorted(s.value for s in allowed))
        raise LifecycleError(
            f"{operation} is not allowed while tournament '{tournament.get('name')}' "
            f"is in status '{current.value}' (allowed: {allowed_names})"
        )
    return current


def next_status(tournament: Dict, operation: str) -> Optional[TournamentStatus]:
    """Status to persist after a successful operation, None when unchanged"""
    _, target = OPERATION_RULES[operation]
    if target is None:
        return None
    current = TournamentStatus(tournament.get("status", S.SIGNUP))
    if current == target:
        return None
    if not is_valid_transition(current, target):
        raise LifecycleError(f"Invalid status transition {current.value} -> {target.value}")
    return target
