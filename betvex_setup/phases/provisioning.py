import random
from dataclasses import dataclass
from typing import Any, List

import structlog

from betvex_setup.constants import ONE_USDC, ONE_YOCTO, PRINCIPAL_MAIN, STORAGE_DEPOSIT
from betvex_setup.phases.base import Phase
from betvex_setup.rpc import Resources
from betvex_setup.utils.batch import raise_for_failures, run_batch

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BettorAccount:
    """A throw-away account created for one run, holding a single key."""

    account_id: str
    credential: str

    def __str__(self) -> str:
        return self.account_id


def generate_account_id(prefix: str, rng: random.Random, network: str = "testnet") -> str:
    """Return an account id like ``user-1234567890.testnet``."""
    return f"{prefix}-{rng.randint(1_000_000_000, 9_999_999_999)}.{network}"


class AccountBatchPhase(Phase):
    """Run one remote call per bettor account, concurrently.

    Provisioning must succeed for every account, a single failed item fails
    the whole phase with a :class:`PhaseError`.
    """

    def _run(self, *args, **kwargs):
        outcomes = run_batch(self._runner.accounts, self._provision_with_retry)
        raise_for_failures(outcomes, self._name)
        log.info("All accounts done", phase=self._name, count=len(outcomes))

    def _provision_with_retry(self, account: BettorAccount) -> Any:
        log.debug("Provisioning account", phase=self._name, account_id=account.account_id)
        return self.retry(lambda: self._provision(account))

    def _provision(self, account: BettorAccount) -> Any:
        raise NotImplementedError


class CreateAccountsPhase(AccountBatchPhase):
    """Create fresh bettor accounts through the network root account.

    Every new account gets the public key of the first ``main`` key as its
    full access key, so that key can sign for all bettors.
    """

    _name = "create_accounts"

    def _run(self, *args, **kwargs):
        settings = self._runner.settings
        self._runner.accounts = self._generate_accounts(settings.accounts.count)
        super()._run(*args, **kwargs)

    def _generate_accounts(self, count: int) -> List[BettorAccount]:
        network = self._runner.settings.contracts.network_root
        prefix = self._runner.settings.accounts.prefix
        account_ids: List[str] = []
        while len(account_ids) < count:
            account_id = generate_account_id(prefix, self._runner.rng, network)
            if account_id not in account_ids:
                account_ids.append(account_id)
        return [
            BettorAccount(account_id=account_id, credential=self._runner.bettor_credential)
            for account_id in account_ids
        ]

    def _provision(self, account: BettorAccount) -> Any:
        contracts = self._runner.settings.contracts
        return self._runner.gateway.invoke(
            PRINCIPAL_MAIN,
            contracts.network_root,
            "create_account",
            {
                "new_account_id": account.account_id,
                "new_public_key": self._runner.bettor_public_key,
            },
            Resources(deposit=self._runner.settings.accounts.creation_deposit),
        )


class FundNearPhase(AccountBatchPhase):
    """Top up every bettor account with NEAR for transaction fees."""

    _name = "fund_near"

    def _provision(self, account: BettorAccount) -> Any:
        return self._runner.gateway.send_money(
            PRINCIPAL_MAIN, account.account_id, self._runner.settings.accounts.near_funding
        )


class RegisterStoragePhase(AccountBatchPhase):
    """Pay the USDC contract's storage deposit for every bettor account."""

    _name = "register_usdc"

    def _provision(self, account: BettorAccount) -> Any:
        return self._runner.gateway.invoke(
            PRINCIPAL_MAIN,
            self._runner.settings.contracts.usdc,
            "storage_deposit",
            {"account_id": account.account_id},
            Resources(deposit=STORAGE_DEPOSIT),
        )


class FundUsdcPhase(AccountBatchPhase):
    _name = "fund_usdc"

    def _provision(self, account: BettorAccount) -> Any:
        amount = self._runner.settings.accounts.usdc_funding * ONE_USDC
        return self._runner.gateway.invoke(
            PRINCIPAL_MAIN,
            self._runner.settings.contracts.usdc,
            "ft_transfer",
            {"receiver_id": account.account_id, "amount": str(amount)},
            Resources(deposit=ONE_YOCTO),
        )
