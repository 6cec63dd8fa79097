import json
import random

import pytest

from betvex_setup.constants import ONE_USDC, ONE_YOCTO, TEAMS, USDC_CONTRACT
from betvex_setup.phases.betting import BettingPhase, other_team, parse_users_bets, plan_bets
from betvex_setup.phases.lifecycle import plan_lifecycle
from betvex_setup.phases.provisioning import BettorAccount
from betvex_setup.tracker import Bet
from betvex_setup.utils.configuration.settings import BettingConfig, LifecycleConfig


@pytest.fixture
def plan(matches):
    return plan_lifecycle(matches, LifecycleConfig({}), random.Random(11))


class TestPlanBets:
    @pytest.mark.parametrize("seed", range(20))
    def test_counts_and_amounts_stay_within_limits(self, matches, plan, seed):
        settings = BettingConfig({})
        intents = plan_bets(matches, plan, settings, random.Random(seed))

        assert 1 <= len(intents) <= settings.max_bets
        assert all(1 <= intent.amount <= settings.max_bet_amount for intent in intents)
        assert sum(intent.amount for intent in intents) <= settings.account_ceiling
        assert {intent.team for intent in intents} <= set(TEAMS)
        assert {intent.match_key for intent in intents} <= {m.key for m in matches}

    def test_bet_count_is_drawn_between_min_and_max(self, matches, plan):
        settings = BettingConfig({"betting": {"min_bets": 8, "max_bets": 12}})
        counts = {len(plan_bets(matches, plan, settings, random.Random(seed))) for seed in range(50)}
        assert counts <= set(range(8, 13))
        assert len(counts) > 1

    def test_ceiling_stops_betting(self, matches, plan):
        settings = BettingConfig(
            {"betting": {"min_bets": 10, "max_bets": 10, "max_bet_amount": 100, "account_ceiling": 5}}
        )
        intents = plan_bets(matches, plan, settings, random.Random(0))

        assert sum(intent.amount for intent in intents) <= 5
        assert len(intents) <= 5

    def test_full_bias_backs_planned_winners_only(self, matches, plan):
        settings = BettingConfig({"betting": {"finished_match_bias": 1, "winner_bias": 1}})
        intents = plan_bets(matches, plan, settings, random.Random(4))

        for intent in intents:
            assert plan.winners[intent.match_key] == intent.team

    def test_zero_winner_bias_backs_planned_losers(self, matches, plan):
        settings = BettingConfig({"betting": {"finished_match_bias": 1, "winner_bias": 0}})
        intents = plan_bets(matches, plan, settings, random.Random(4))

        for intent in intents:
            assert other_team(plan.winners[intent.match_key]) == intent.team

    def test_no_matches_no_bets(self, plan):
        assert plan_bets([], plan, BettingConfig({}), random.Random(1)) == []

    def test_same_seed_same_bets(self, matches, plan):
        settings = BettingConfig({})
        assert plan_bets(matches, plan, settings, random.Random(8)) == plan_bets(
            matches, plan, settings, random.Random(8)
        )


class TestParseUsersBets:
    def test_list_of_pairs(self):
        result = [["7", {"match_id": "A-B-2024-12-01", "team": "Team1", "amount": "5000000"}]]

        assert parse_users_bets("user-1.testnet", result) == [
            Bet(7, "A-B-2024-12-01", "user-1.testnet", "Team1", 5_000_000)
        ]

    def test_mapping(self):
        result = {"3": {"match_id": "A-B-2024-12-01", "team": "Team2", "amount": 1}}

        assert parse_users_bets("user-1.testnet", result)[0].bet_id == 3

    def test_empty(self):
        assert parse_users_bets("user-1.testnet", None) == []
        assert parse_users_bets("user-1.testnet", []) == []


@pytest.fixture
def betting_runner(runner, matches):
    for match in matches:
        runner.tracker.record_created(match)
    runner.plan = plan_lifecycle(matches, runner.settings.lifecycle, runner.rng)
    runner.accounts = [
        BettorAccount(account_id=f"user-{n:010d}.testnet", credential="ed25519:main-key-1")
        for n in range(4)
    ]
    return runner


class TestBettingPhase:
    def test_bets_are_placed_and_tracked(self, betting_runner, ledger):
        totals = BettingPhase(betting_runner)()

        calls = ledger.calls_to("ft_transfer_call")
        assert {call.account_id for call in calls} == {a.account_id for a in betting_runner.accounts}
        for call in calls:
            assert call.contract_id == USDC_CONTRACT
            assert call.deposit == ONE_YOCTO
            assert set(json.loads(call.args["msg"])["Bet"]) == {"match_id", "team"}

        tracked = [bet for record in betting_runner.tracker for bet in record.bets]
        assert len(tracked) == len(calls)
        assert len({bet.bet_id for bet in tracked}) == len(tracked)
        for bet in tracked:
            assert bet.match_key in betting_runner.tracker

        for account in betting_runner.accounts:
            placed = sum(
                int(call.args["amount"]) for call in calls if call.account_id == account.account_id
            )
            assert totals[account.account_id] * ONE_USDC == placed

    def test_bets_of_one_account_are_sequential(self, betting_runner, ledger):
        BettingPhase(betting_runner)()

        account = betting_runner.accounts[0]
        bet_ids = [int(bet_id) for bet_id, _ in ledger.bets[account.account_id]]
        assert bet_ids == sorted(bet_ids)

    def test_failed_bet_is_skipped(self, betting_runner, ledger):
        unlucky = betting_runner.accounts[2].account_id
        ledger.fail_when(lambda call: call.account_id == unlucky)

        totals = BettingPhase(betting_runner)()

        assert totals[unlucky] == 0
        assert all(totals[a.account_id] > 0 for a in betting_runner.accounts if a.account_id != unlucky)
        assert all(bet.bettor != unlucky for record in betting_runner.tracker for bet in record.bets)

    def test_bets_on_unknown_matches_are_ignored(self, betting_runner, ledger):
        account = betting_runner.accounts[0].account_id
        ledger.bets[account].append(
            ["999", {"match_id": "Ghost-Town-2030-01-01", "team": "Team1", "amount": "1000000"}]
        )

        BettingPhase(betting_runner)()

        assert 999 not in {bet.bet_id for record in betting_runner.tracker for bet in record.bets}
