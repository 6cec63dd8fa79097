import random
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import gevent
import structlog
from gevent.pool import Pool

from betvex_setup.constants import PRINCIPAL_ADMIN, TEAM_1, TEAM_2
from betvex_setup.exceptions import RemoteCallError
from betvex_setup.phases.base import Phase
from betvex_setup.rpc import Resources
from betvex_setup.tracker import MatchState
from betvex_setup.utils.configuration.matches import MatchDefinition
from betvex_setup.utils.configuration.settings import LifecycleConfig

log = structlog.get_logger(__name__)


@dataclass
class LifecyclePlan:
    """Which matches get their betting ended, finished or cancelled, decided up front.

    ``finish_candidates`` holds every end-betting match outside the cancel
    set, in end-betting order, and each of them has a winner drawn before any
    bet is placed. ``finish`` is the first ``finish_count`` of them, which the
    betting phase favours. At run time the first ``finish_count`` candidates
    whose betting actually ended are finished, so a failed end-betting call
    is backfilled by the next candidate.
    """

    end_betting: List[MatchDefinition] = field(default_factory=list)
    cancel: List[MatchDefinition] = field(default_factory=list)
    finish_candidates: List[MatchDefinition] = field(default_factory=list)
    finish_count: int = 0
    winners: Dict[str, str] = field(default_factory=dict)

    @property
    def finish(self) -> List[MatchDefinition]:
        return self.finish_candidates[: self.finish_count]

    def will_finish(self, match_key: str) -> bool:
        return any(match.key == match_key for match in self.finish)


def draw_winner(match: MatchDefinition, rng: random.Random) -> str:
    """Draw the winner of `match`, weighted by the implied probability of its odds."""
    if match.in_odds_1 > 0 and match.in_odds_2 > 0:
        weights = (1 / match.in_odds_1, 1 / match.in_odds_2)
    else:
        weights = (1.0, 1.0)
    return rng.choices((TEAM_1, TEAM_2), weights=weights)[0]


def plan_lifecycle(
    matches: Sequence[MatchDefinition], settings: LifecycleConfig, rng: random.Random
) -> LifecyclePlan:
    shuffled = list(matches)
    rng.shuffle(shuffled)
    end_betting = shuffled[: settings.end_betting_count]

    cancel = list(matches[len(matches) - settings.cancel_count :]) if settings.cancel_count else []
    cancel_keys = {match.key for match in cancel}

    candidates = [match for match in end_betting if match.key not in cancel_keys]

    plan = LifecyclePlan(
        end_betting=end_betting,
        cancel=cancel,
        finish_candidates=candidates,
        finish_count=settings.finish_count,
        winners={match.key: draw_winner(match, rng) for match in candidates},
    )
    log.info(
        "Planned match outcomes",
        end_betting=[match.key for match in plan.end_betting],
        cancel=[match.key for match in plan.cancel],
        finish={match.key: plan.winners[match.key] for match in plan.finish},
        backfill=[match.key for match in plan.finish_candidates[plan.finish_count :]],
    )
    return plan


class LifecyclePhase(Phase):
    """Drive the planned matches through end betting, cancellation and finishing.

    Failures of single matches are logged and skipped. A match is only
    transitioned in the tracker after its remote call succeeded, and only
    matches whose betting was ended here are finished.
    """

    _name = "lifecycle"

    def _run(self, *args, **kwargs):
        settings = self._runner.settings.lifecycle
        plan = self._runner.plan

        self._end_betting_wave(plan.end_betting, settings.end_betting_delay)
        log.info("Waiting after end_betting operations", delay=settings.wave_delay)
        gevent.sleep(settings.wave_delay)

        for match in plan.cancel:
            self._cancel(match)
            gevent.sleep(settings.cancel_delay)

        log.info("Waiting before finishing matches", delay=settings.wave_delay)
        gevent.sleep(settings.wave_delay)

        tracker = self._runner.tracker
        to_finish: List[MatchDefinition] = []
        for match in plan.finish_candidates:
            if len(to_finish) >= settings.finish_count:
                break
            # The tracker is the only record of what this run already finished.
            if tracker.is_finished(match.key):
                log.info("Skipping match, already finished", match_id=match.key)
                continue
            if tracker.state(match.key) is MatchState.BETTING_ENDED:
                to_finish.append(match)

        for match in to_finish:
            self._finish(match, plan.winners[match.key])
            gevent.sleep(settings.finish_delay)

        summary = tracker.summary()
        log.info(
            "Final match states",
            betting_ended=tracker.keys_in_state(MatchState.BETTING_ENDED),
            cancelled=tracker.keys_in_state(MatchState.CANCELLED),
            finished={
                key: tracker.get(key).winner for key in tracker.keys_in_state(MatchState.FINISHED)
            },
        )
        return summary

    def _call(self, method: str, args: dict) -> None:
        self.retry(
            lambda: self._runner.gateway.invoke(
                PRINCIPAL_ADMIN, self._runner.settings.contracts.betting, method, args, Resources()
            )
        )

    def _end_betting_wave(self, matches: List[MatchDefinition], launch_delay: float) -> None:
        pool = Pool()
        greenlets = []
        for match in matches:
            log.info("Ending betting for match", match_id=match.key)
            greenlets.append(pool.spawn(self._call, "end_betting", {"match_id": match.key}))
            gevent.sleep(launch_delay)
        pool.join()

        for match, greenlet in zip(matches, greenlets):
            if not greenlet.successful():
                if not isinstance(greenlet.exception, RemoteCallError):
                    raise greenlet.exception
                log.error(
                    "Failed to end betting for match",
                    match_id=match.key,
                    error=str(greenlet.exception),
                )
                continue
            self._runner.tracker.record_betting_ended(match.key)
            log.info("Ended betting for match", match_id=match.key)

    def _cancel(self, match: MatchDefinition) -> None:
        state = self._runner.tracker.state(match.key)
        if state not in (MatchState.CREATED, MatchState.BETTING_ENDED):
            log.warning("Cannot cancel match", match_id=match.key, state=state.value)
            return
        try:
            self._call("cancel_match", {"match_id": match.key})
        except RemoteCallError as ex:
            log.error("Failed to cancel match", match_id=match.key, error=str(ex))
            return
        self._runner.tracker.record_cancelled(match.key)
        log.info("Cancelled match", match_id=match.key)

    def _finish(self, match: MatchDefinition, winner: str) -> None:
        log.info("Finishing match", match_id=match.key, winner=winner)
        try:
            self._call("finish_match", {"match_id": match.key, "winner": winner})
        except RemoteCallError as ex:
            log.error("Failed to finish match", match_id=match.key, winner=winner, error=str(ex))
            return
        self._runner.tracker.record_finished(match.key, winner)
        log.info("Finished match", match_id=match.key, winner=winner)
