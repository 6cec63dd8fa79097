import base64
import json
import random
from collections import defaultdict
from typing import Any, Callable, Dict, List, NamedTuple
from unittest import mock

import gevent
import pytest
import responses
import yaml

from betvex_setup.constants import ONE_NEAR, ONE_USDC, ONE_VEX, USDC_CONTRACT, VEX_CONTRACT
from betvex_setup.definition import SetupDefinition
from betvex_setup.runner import SetupRunner
from betvex_setup.utils import DummyStream
from betvex_setup.utils.configuration.matches import MatchDefinition
from betvex_setup.utils.configuration.settings import EnvironmentConfig

RPC_ENDPOINT = "http://rpc.betvex.test"
MAIN_ACCOUNT_ID = "main.testnet"
ADMIN_ACCOUNT_ID = "admin.testnet"

#: Every delay set to zero, so full runs finish instantly.
FAST_DEFINITION = {
    "settings": {"retry_attempts": 3, "retry_delay": 0},
    "matches": {"batch_delay": 0},
    "betting": {"delay": 0},
    "lifecycle": {"end_betting_delay": 0, "wave_delay": 0, "cancel_delay": 0, "finish_delay": 0},
    "claims": {"delay": 0},
}


class Call(NamedTuple):
    account_id: str
    credential: str
    contract_id: str
    method: str
    args: Dict[str, Any]
    gas: int
    deposit: int


class FakeConnection:
    def __init__(self, ledger: "FakeLedger", account_id: str, credential: str) -> None:
        self.ledger = ledger
        self.account_id = account_id
        self.credential = credential

    def function_call(self, contract_id, method, args, gas, deposit):
        return self.ledger.execute(
            Call(self.account_id, self.credential, contract_id, method, args, gas, deposit)
        )

    def send_money(self, receiver_id, amount):
        return self.ledger.execute(
            Call(
                self.account_id, self.credential, receiver_id, "send_money", {"amount": amount}, 0, amount
            )
        )


class FakeLedger:
    """Stands in for the NEAR network: records every signed call and keeps the bets.

    Read-only queries are answered by :meth:`rpc_callback`, registered with `responses`.
    """

    def __init__(self) -> None:
        self.calls: List[Call] = []
        self.failures: List[Callable[[Call], bool]] = []
        self.bets: Dict[str, List[list]] = defaultdict(list)
        self.next_bet_id = 1
        self.balances = {
            USDC_CONTRACT: 20_000 * ONE_USDC,
            VEX_CONTRACT: 200_000 * ONE_VEX,
            "near": 10 * ONE_NEAR,
        }

    def connect(self, rpc_endpoint: str, account_id: str, credential: str) -> FakeConnection:
        return FakeConnection(self, account_id, credential)

    def fail_when(self, predicate: Callable[[Call], bool]) -> None:
        self.failures.append(predicate)

    def calls_to(self, method: str) -> List[Call]:
        return [call for call in self.calls if call.method == method]

    def execute(self, call: Call) -> Dict[str, Any]:
        self.calls.append(call)
        # Let the other greenlets of a batch run, like a real network round trip would.
        gevent.sleep(0)
        if any(predicate(call) for predicate in self.failures):
            raise RuntimeError(f"{call.method} rejected by fake ledger")

        if call.method == "ft_transfer_call" and call.contract_id == USDC_CONTRACT:
            msg = json.loads(call.args["msg"])
            if isinstance(msg, dict) and "Bet" in msg:
                bet = {
                    "match_id": msg["Bet"]["match_id"],
                    "team": msg["Bet"]["team"],
                    "amount": call.args["amount"],
                }
                self.bets[call.account_id].append([str(self.next_bet_id), bet])
                self.next_bet_id += 1
        return {"status": {"SuccessValue": ""}, "transaction": {"hash": f"tx-{len(self.calls)}"}}

    def view(self, contract_id: str, method: str, args: Dict[str, Any]) -> Any:
        if method == "ft_balance_of":
            return str(self.balances[contract_id])
        if method == "get_users_bets":
            return self.bets[args["bettor"]]
        raise AssertionError(f"Unexpected view {method}")

    def rpc_callback(self, request):
        payload = json.loads(request.body)
        params = payload["params"]
        if params["request_type"] == "view_account":
            result = {"amount": str(self.balances["near"]), "locked": "0"}
        else:
            args = json.loads(base64.b64decode(params["args_base64"]))
            value = self.view(params["account_id"], params["method_name"], args)
            result = {"result": list(json.dumps(value).encode()), "logs": []}
        return 200, {}, json.dumps({"jsonrpc": "2.0", "id": payload["id"], "result": result})


def _make_matches(count: int) -> List[MatchDefinition]:
    return [
        MatchDefinition(
            game="counter-strike-2",
            team_1=f"Home {n}",
            team_2=f"Away {n}",
            in_odds_1=1.5 + n / 10,
            in_odds_2=2.5,
            date=f"2024-12-{n + 1:02d}",
        )
        for n in range(count)
    ]


@pytest.fixture(autouse=True)
def silence_hub_tracebacks():
    hub = gevent.get_hub()
    original = hub.exception_stream
    hub.exception_stream = DummyStream()
    yield
    hub.exception_stream = original


@pytest.fixture
def environment():
    return EnvironmentConfig(
        main_account_id=MAIN_ACCOUNT_ID,
        admin_account_id=ADMIN_ACCOUNT_ID,
        main_keys=["ed25519:main-key-1", "ed25519:main-key-2", "ed25519:main-key-3"],
        admin_keys=["ed25519:admin-key-1", "ed25519:admin-key-2"],
        rpc_endpoint=RPC_ENDPOINT,
    )


@pytest.fixture
def definition_dict():
    return json.loads(json.dumps(FAST_DEFINITION))


@pytest.fixture
def definition(tmp_path, environment, definition_dict):
    definition_file = tmp_path.joinpath("setup.yaml")
    definition_file.write_text(yaml.safe_dump(definition_dict))
    return SetupDefinition(definition_file, environment)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def mocked_rpc(ledger):
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add_callback(
            responses.POST, RPC_ENDPOINT, callback=ledger.rpc_callback, content_type="application/json"
        )
        yield rsps


@pytest.fixture
def fake_public_keys():
    with mock.patch(
        "betvex_setup.runner.public_key_of", side_effect=lambda key: key.replace("key", "pub")
    ) as patched:
        yield patched


@pytest.fixture
def matches():
    return _make_matches(20)


@pytest.fixture
def runner(environment, definition, matches, ledger, mocked_rpc, fake_public_keys):
    return SetupRunner(
        environment=environment,
        definition=definition,
        matches=matches,
        rng=random.Random(1234),
        connector=ledger.connect,
    )


@pytest.fixture
def make_matches():
    return _make_matches


@pytest.fixture
def ledger_factory():
    return FakeLedger
