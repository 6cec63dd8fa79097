from typing import Any, List

import gevent
import structlog

from betvex_setup.constants import PRINCIPAL_ADMIN
from betvex_setup.phases.base import Phase
from betvex_setup.rpc import Resources
from betvex_setup.utils.batch import raise_for_failures, run_batch
from betvex_setup.utils.configuration.matches import MatchDefinition

log = structlog.get_logger(__name__)


def chunked(matches: List[MatchDefinition], size: int) -> List[List[MatchDefinition]]:
    return [matches[start : start + size] for start in range(0, len(matches), size)]


class CreateMatchesPhase(Phase):
    """Create every fixture match on the betting contract.

    Matches are created in fixed size batches, each batch concurrently, with
    a pause in between. Any failed creation aborts the run.
    """

    _name = "create_matches"

    def _run(self, *args, **kwargs):
        settings = self._runner.settings.matches
        batches = chunked(self._runner.matches, settings.batch_size)

        for number, batch in enumerate(batches, start=1):
            log.info("Creating batch of matches", batch=number, of=len(batches), size=len(batch))
            outcomes = run_batch(batch, self._create_match)
            raise_for_failures(outcomes, self._name)
            for outcome in outcomes:
                self._runner.tracker.record_created(outcome.item)
            log.info("Created batch of matches", batch=number)

            if number < len(batches):
                gevent.sleep(settings.batch_delay)

        log.info("All matches created", count=len(self._runner.tracker))

    def _create_match(self, match: MatchDefinition) -> Any:
        log.debug("Creating match", match_id=match.key, team_1=match.team_1, team_2=match.team_2)
        return self.retry(
            lambda: self._runner.gateway.invoke(
                PRINCIPAL_ADMIN,
                self._runner.settings.contracts.betting,
                "create_match",
                match.as_args(),
                Resources(),
            )
        )
