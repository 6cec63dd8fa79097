from unittest import mock

import pytest

from betvex_setup.constants import BETTING_CONTRACT, TEAM_1, TEAM_2
from betvex_setup.phases.claims import ClaimsPhase
from betvex_setup.phases.provisioning import BettorAccount
from betvex_setup.tracker import Bet

ALICE = "user-0000000001.testnet"
BOB = "user-0000000002.testnet"


@pytest.fixture
def claims_runner(runner, make_matches):
    finished, cancelled, open_match = make_matches(3)
    tracker = runner.tracker
    for match in (finished, cancelled, open_match):
        tracker.record_created(match)

    bets = [
        Bet(1, finished.key, ALICE, TEAM_1, 10),
        Bet(2, finished.key, BOB, TEAM_2, 10),
        Bet(3, finished.key, BOB, TEAM_1, 10),
        Bet(4, cancelled.key, ALICE, TEAM_2, 10),
        Bet(5, cancelled.key, BOB, TEAM_1, 10),
        Bet(6, open_match.key, ALICE, TEAM_1, 10),
    ]
    for bet in bets:
        tracker.record_bet(bet.match_key, bet)

    tracker.record_betting_ended(finished.key)
    tracker.record_finished(finished.key, TEAM_1)
    tracker.record_cancelled(cancelled.key)

    runner.accounts = [
        BettorAccount(account_id=ALICE, credential="alice-key"),
        BettorAccount(account_id=BOB, credential="bob-key"),
    ]
    return runner


def claimed_bet_ids(ledger):
    return [int(call.args["bet_id"]) for call in ledger.calls_to("claim")]


class TestClaimsPhase:
    def test_claims_winning_and_refundable_bets(self, claims_runner, ledger):
        results = ClaimsPhase(claims_runner)()

        assert results == {1: True, 3: True, 4: True, 5: True}
        assert claimed_bet_ids(ledger) == [1, 3, 4, 5]

    def test_claims_are_signed_by_the_bettor(self, claims_runner, ledger):
        ClaimsPhase(claims_runner)()

        signers = {int(c.args["bet_id"]): (c.account_id, c.credential) for c in ledger.calls}
        assert signers[1] == (ALICE, "alice-key")
        assert signers[3] == (BOB, "bob-key")
        assert {c.contract_id for c in ledger.calls} == {BETTING_CONTRACT}

    def test_extra_attempt_after_retries_are_exhausted(self, claims_runner, ledger):
        attempts = claims_runner.settings.rpc.retry_attempts
        failures = []

        def bet_one_fails_one_full_round(call):
            if call.args["bet_id"] == "1" and len(failures) < attempts:
                failures.append(call)
                return True
            return False

        ledger.fail_when(bet_one_fails_one_full_round)

        with mock.patch("betvex_setup.phases.claims.gevent") as patched_gevent:
            results = ClaimsPhase(claims_runner)()

        assert results[1] is True
        assert claimed_bet_ids(ledger).count(1) == attempts + 1
        patched_gevent.sleep.assert_any_call(claims_runner.settings.claims.delay)

    def test_failed_claim_does_not_stop_the_others(self, claims_runner, ledger):
        ledger.fail_when(lambda call: call.args["bet_id"] == "4")

        results = ClaimsPhase(claims_runner)()

        assert results == {1: True, 3: True, 4: False, 5: True}
        assert claimed_bet_ids(ledger).count(4) == 2 * claims_runner.settings.rpc.retry_attempts

    def test_bet_of_unknown_bettor_is_reported(self, claims_runner, ledger):
        claims_runner.accounts = claims_runner.accounts[:1]

        results = ClaimsPhase(claims_runner)()

        assert results == {1: True, 3: False, 4: True, 5: False}
        assert claimed_bet_ids(ledger) == [1, 4]
