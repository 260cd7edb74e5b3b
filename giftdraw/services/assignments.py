from __future__ import annotations

import random
from typing import Hashable, NamedTuple, Sequence

from ..errors import InsufficientParticipantsError

MIN_PARTICIPANTS = 3


class MatchPair(NamedTuple):
    giver_id: Hashable
    recipient_id: Hashable


def run_matching_algorithm(participant_ids: Sequence, rng: random.Random | None = None) -> list[MatchPair]:
    """
    Assign every participant exactly one recipient, forming a single cycle.

    The ids are shuffled and each one gives to the next, the last wrapping
    around to the first. For N >= 3 this can never pair someone with
    themselves and never splits into smaller closed loops, so there is no
    retry-until-valid step.
    """
    if len(participant_ids) < MIN_PARTICIPANTS:
        raise InsufficientParticipantsError(len(participant_ids), MIN_PARTICIPANTS)

    if len(set(participant_ids)) != len(participant_ids):
        raise ValueError("Participant ids must be unique.")

    order = list(participant_ids)
    (rng or random).shuffle(order)

    n = len(order)
    return [MatchPair(order[i], order[(i + 1) % n]) for i in range(n)]
