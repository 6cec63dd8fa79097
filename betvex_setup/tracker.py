from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

import structlog

from betvex_setup.constants import TEAMS
from betvex_setup.exceptions import InvalidTransition, UnknownMatch
from betvex_setup.utils.configuration.matches import MatchDefinition

log = structlog.get_logger(__name__)


class MatchState(Enum):
    CREATED = "created"
    BETTING_ENDED = "betting_ended"
    FINISHED = "finished"
    CANCELLED = "cancelled"


#: Allowed source states for every target state.
TRANSITIONS: Dict[MatchState, Tuple[MatchState, ...]] = {
    MatchState.BETTING_ENDED: (MatchState.CREATED,),
    MatchState.FINISHED: (MatchState.BETTING_ENDED,),
    MatchState.CANCELLED: (MatchState.CREATED, MatchState.BETTING_ENDED),
}


@dataclass(frozen=True)
class Bet:
    """A bet as reported by the betting contract's ``get_users_bets`` view."""

    bet_id: int
    match_key: str
    bettor: str
    team: str
    amount: int  # USDC minor units


@dataclass
class MatchRecord:
    definition: MatchDefinition
    state: MatchState = MatchState.CREATED
    winner: Optional[str] = None
    bets: List[Bet] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.definition.key


class MatchLifecycleTracker:
    """In-memory ledger of the matches and bets created during one run.

    The tracker is the only place match states change. It mirrors the state
    machine of the betting contract::

        Created -> BettingEnded -> Finished(winner)
           |            |
           +------------+-----> Cancelled

    Finished and Cancelled are terminal. Only transitions confirmed by a
    successful remote call should be recorded; the tracker itself never talks
    to the remote service, which is why a restarted run cannot know what a
    previous run already finished or claimed.
    """

    def __init__(self) -> None:
        self._matches: Dict[str, MatchRecord] = {}

    def __contains__(self, match_key) -> bool:
        return match_key in self._matches

    def __iter__(self) -> Iterator[MatchRecord]:
        return iter(self._matches.values())

    def __len__(self) -> int:
        return len(self._matches)

    def record_created(self, match: MatchDefinition) -> MatchRecord:
        if match.key in self._matches:
            log.warning("Match recorded twice, keeping the first record", match_id=match.key)
            return self._matches[match.key]
        record = MatchRecord(definition=match)
        self._matches[match.key] = record
        log.debug("Match created", match_id=match.key)
        return record

    def record_betting_ended(self, match_key: str) -> None:
        self._transition(match_key, MatchState.BETTING_ENDED)

    def record_finished(self, match_key: str, winner: str) -> bool:
        """Mark the match finished with `winner`.

        Returns False without changing anything if the match is already
        finished, so calling this twice is the same as calling it once.
        """
        if winner not in TEAMS:
            raise ValueError(f"Winner must be one of {TEAMS}, not {winner!r}")
        record = self.get(match_key)
        if record.state is MatchState.FINISHED:
            log.info(
                "Match already finished, skipping", match_id=match_key, winner=record.winner
            )
            return False
        self._transition(match_key, MatchState.FINISHED)
        record.winner = winner
        return True

    def record_cancelled(self, match_key: str) -> None:
        self._transition(match_key, MatchState.CANCELLED)

    def record_bet(self, match_key: str, bet: Bet) -> None:
        self.get(match_key).bets.append(bet)

    def get(self, match_key: str) -> MatchRecord:
        try:
            return self._matches[match_key]
        except KeyError:
            raise UnknownMatch(match_key) from None

    def state(self, match_key: str) -> MatchState:
        return self.get(match_key).state

    def is_finished(self, match_key: str) -> bool:
        return match_key in self._matches and self._matches[match_key].state is MatchState.FINISHED

    def keys_in_state(self, state: MatchState) -> List[str]:
        return [record.key for record in self._matches.values() if record.state is state]

    def claimable_bets(self, match_key: str) -> List[Bet]:
        """Bets that can be claimed given the match's recorded state.

        All bets of a cancelled match are refundable, of a finished match only
        the ones that backed the winner pay out. Anything else is not claimable yet.
        """
        record = self.get(match_key)
        if record.state is MatchState.FINISHED:
            return [bet for bet in record.bets if bet.team == record.winner]
        if record.state is MatchState.CANCELLED:
            return list(record.bets)
        return []

    def all_claimable_bets(self) -> List[Bet]:
        claimable = []
        for match_key in self._matches:
            claimable.extend(self.claimable_bets(match_key))
        return claimable

    def summary(self) -> Dict[str, int]:
        counts = Counter(record.state.value for record in self._matches.values())
        summary = {state.value: counts.get(state.value, 0) for state in MatchState}
        summary["bets"] = sum(len(record.bets) for record in self._matches.values())
        return summary

    def _transition(self, match_key: str, target: MatchState) -> None:
        record = self.get(match_key)
        if record.state not in TRANSITIONS[target]:
            raise InvalidTransition(
                f"Match {match_key!r} cannot go from {record.state.value} to {target.value}"
            )
        log.debug(
            "Match state changed", match_id=match_key, old=record.state.value, new=target.value
        )
        record.state = target
