import json
import random
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence

import gevent
import structlog

from betvex_setup.constants import ONE_USDC, ONE_YOCTO, TEAM_1, TEAM_2
from betvex_setup.exceptions import RemoteCallError
from betvex_setup.phases.base import Phase
from betvex_setup.phases.lifecycle import LifecyclePlan
from betvex_setup.phases.provisioning import BettorAccount
from betvex_setup.rpc import Resources
from betvex_setup.tracker import Bet
from betvex_setup.utils.batch import run_batch
from betvex_setup.utils.configuration.matches import MatchDefinition
from betvex_setup.utils.configuration.settings import BettingConfig

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BetIntent:
    match_key: str
    team: str
    amount: int  # whole USDC


def other_team(team: str) -> str:
    return TEAM_2 if team == TEAM_1 else TEAM_1


def plan_bets(
    matches: Sequence[MatchDefinition],
    plan: LifecyclePlan,
    settings: BettingConfig,
    rng: random.Random,
) -> List[BetIntent]:
    """Draw the bets of one account.

    Most bets go to matches that are planned to finish, and most of those
    back the planned winner. Amounts are drawn uniformly from one USDC up to
    the per-bet maximum, never exceeding the per-account ceiling in total.
    """
    if not matches:
        return []

    intents: List[BetIntent] = []
    total = 0
    for _ in range(rng.randint(settings.min_bets, settings.max_bets)):
        if plan.finish and rng.random() < settings.finished_match_bias:
            match = rng.choice(plan.finish)
        else:
            match = rng.choice(matches)

        if plan.will_finish(match.key):
            winner = plan.winners[match.key]
            team = winner if rng.random() < settings.winner_bias else other_team(winner)
        else:
            team = TEAM_1 if rng.random() < 0.5 else TEAM_2

        remaining = settings.account_ceiling - total
        if remaining <= 0:
            break
        amount = rng.randint(1, min(remaining, settings.max_bet_amount))
        total += amount
        intents.append(BetIntent(match_key=match.key, team=team, amount=amount))
    return intents


def parse_users_bets(bettor: str, result: Any) -> List[Bet]:
    """Turn the ``get_users_bets`` view result into :class:`Bet` records.

    The contract returns ``[[bet_id, {"match_id": ..., "team": ..., "amount": ...}], ...]``.
    """
    entries: Iterable = result.items() if isinstance(result, dict) else result or []
    bets = []
    for bet_id, data in entries:
        bets.append(
            Bet(
                bet_id=int(bet_id),
                match_key=data["match_id"],
                bettor=bettor,
                team=data["team"],
                amount=int(data["amount"]),
            )
        )
    return bets


class BettingPhase(Phase):
    """Place randomized bets from every bettor account, then read them back.

    Accounts bet concurrently, the bets of a single account are placed one
    after another with a pause in between. A failed bet is logged and
    skipped. The ids of the placed bets are only known to the contract, so
    they are fetched with ``get_users_bets`` and recorded in the tracker.
    """

    _name = "betting"

    def _run(self, *args, **kwargs):
        settings = self._runner.settings.betting
        intents = {
            account: plan_bets(self._runner.matches, self._runner.plan, settings, self._runner.rng)
            for account in self._runner.accounts
        }
        for account, account_intents in intents.items():
            log.info("Planned bets", account_id=account.account_id, count=len(account_intents))

        outcomes = run_batch(
            self._runner.accounts, lambda account: self._place_bets(account, intents[account])
        )
        totals: Dict[str, int] = {}
        for outcome in outcomes:
            if not outcome.ok:
                raise outcome.exception
            totals[outcome.item.account_id] = outcome.value
        log.info("Betting summary", total_bet_usdc=totals)

        self._collect_bets()
        return totals

    def _place_bets(self, account: BettorAccount, intents: List[BetIntent]) -> int:
        placed = 0
        for intent in intents:
            planned_winner = (
                self._runner.plan.winners[intent.match_key]
                if self._runner.plan.will_finish(intent.match_key)
                else None
            )
            log.info(
                "Placing bet",
                account_id=account.account_id,
                match_id=intent.match_key,
                team=intent.team,
                amount=intent.amount,
                planned_winner=planned_winner,
            )
            try:
                self.retry(lambda: self._bet(account, intent))
            except RemoteCallError as ex:
                log.error(
                    "Error placing bet",
                    account_id=account.account_id,
                    match_id=intent.match_key,
                    amount=intent.amount,
                    error=str(ex),
                )
            else:
                placed += intent.amount
            gevent.sleep(self._runner.settings.betting.delay)
        return placed

    def _bet(self, account: BettorAccount, intent: BetIntent) -> Any:
        msg = json.dumps({"Bet": {"match_id": intent.match_key, "team": intent.team}})
        return self._runner.gateway.invoke_as(
            account.account_id,
            account.credential,
            self._runner.settings.contracts.usdc,
            "ft_transfer_call",
            {
                "receiver_id": self._runner.settings.contracts.betting,
                "amount": str(intent.amount * ONE_USDC),
                "msg": msg,
            },
            Resources(deposit=ONE_YOCTO),
        )

    def _collect_bets(self) -> None:
        tracker = self._runner.tracker
        betting_contract = self._runner.settings.contracts.betting
        for account in self._runner.accounts:
            try:
                result = self._runner.gateway.view(
                    betting_contract,
                    "get_users_bets",
                    {"bettor": account.account_id, "from_index": None, "limit": None},
                )
                bets = parse_users_bets(account.account_id, result)
            except (RemoteCallError, KeyError, TypeError, ValueError) as ex:
                log.error("Error fetching bets", account_id=account.account_id, error=str(ex))
                continue

            for bet in bets:
                if bet.match_key not in tracker:
                    log.warning(
                        "Bet on unknown match, skipping",
                        bet_id=bet.bet_id,
                        account_id=bet.bettor,
                        match_id=bet.match_key,
                    )
                    continue
                tracker.record_bet(bet.match_key, bet)
            log.info("Fetched bets", account_id=account.account_id, count=len(bets))

        for record in tracker:
            if record.bets:
                log.debug(
                    "Tracked bets for match",
                    match_id=record.key,
                    will_finish=self._runner.plan.will_finish(record.key),
                    bet_ids=[bet.bet_id for bet in record.bets],
                )
