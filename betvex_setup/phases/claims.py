from typing import Dict

import gevent
import structlog

from betvex_setup.exceptions import RemoteCallError
from betvex_setup.phases.base import Phase
from betvex_setup.phases.provisioning import BettorAccount
from betvex_setup.rpc import Resources
from betvex_setup.tracker import Bet, MatchState

log = structlog.get_logger(__name__)


class ClaimsPhase(Phase):
    """Claim every bet the tracker considers claimable.

    Winning bets of finished matches and all bets of cancelled matches are
    claimed by their bettor, one at a time. A claim that still fails after
    the retry policy gets exactly one more attempt after a pause; if that
    fails too it is logged and the next bet is processed.
    """

    _name = "claims"

    def _run(self, *args, **kwargs):
        tracker = self._runner.tracker
        credentials = {
            account.account_id: account.credential for account in self._runner.accounts
        }
        results: Dict[int, bool] = {}

        for state in (MatchState.FINISHED, MatchState.CANCELLED):
            for match_key in tracker.keys_in_state(state):
                record = tracker.get(match_key)
                bets = tracker.claimable_bets(match_key)
                log.info(
                    "Processing claims for match",
                    match_id=match_key,
                    state=state.value,
                    winner=record.winner,
                    total_bets=len(record.bets),
                    claimable=len(bets),
                )
                for bet in bets:
                    credential = credentials.get(bet.bettor)
                    if credential is None:
                        log.error(
                            "No key for bettor, cannot claim",
                            bet_id=bet.bet_id,
                            account_id=bet.bettor,
                            match_id=match_key,
                        )
                        results[bet.bet_id] = False
                        continue
                    account = BettorAccount(account_id=bet.bettor, credential=credential)
                    results[bet.bet_id] = self._claim_with_extra_retry(account, bet)

        claimed = sum(results.values())
        log.info("Claiming process complete", claimed=claimed, failed=len(results) - claimed)
        return results

    def _claim_with_extra_retry(self, account: BettorAccount, bet: Bet) -> bool:
        delay = self._runner.settings.claims.delay
        log.info(
            "Attempting to claim bet",
            bet_id=bet.bet_id,
            account_id=bet.bettor,
            match_id=bet.match_key,
            team=bet.team,
            amount=bet.amount,
        )
        try:
            self._claim(account, bet)
        except RemoteCallError as ex:
            log.warning("Failed to claim bet, retrying once", bet_id=bet.bet_id, error=str(ex))
            gevent.sleep(delay)
            try:
                self._claim(account, bet)
            except RemoteCallError as retry_ex:
                log.error(
                    "Failed to claim bet on retry",
                    bet_id=bet.bet_id,
                    account_id=bet.bettor,
                    match_id=bet.match_key,
                    error=str(retry_ex),
                )
                return False
            log.info("Claimed bet on retry", bet_id=bet.bet_id)
            return True

        log.info("Claimed bet", bet_id=bet.bet_id)
        gevent.sleep(delay)
        return True

    def _claim(self, account: BettorAccount, bet: Bet) -> None:
        self.retry(
            lambda: self._runner.gateway.invoke_as(
                account.account_id,
                account.credential,
                self._runner.settings.contracts.betting,
                "claim",
                {"bet_id": str(bet.bet_id)},
                Resources(),
            )
        )
