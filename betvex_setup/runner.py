import random
from typing import TYPE_CHECKING, Callable, List, Optional

import structlog

from betvex_setup.constants import PRINCIPAL_MAIN
from betvex_setup.definition import SetupDefinition
from betvex_setup.exceptions import CredentialsError
from betvex_setup.near import connect, public_key_of
from betvex_setup.phases.betting import BettingPhase
from betvex_setup.phases.claims import ClaimsPhase
from betvex_setup.phases.lifecycle import LifecyclePhase, LifecyclePlan, plan_lifecycle
from betvex_setup.phases.matches import CreateMatchesPhase
from betvex_setup.phases.preflight import PreflightPhase, StakePhase
from betvex_setup.phases.provisioning import (
    BettorAccount,
    CreateAccountsPhase,
    FundNearPhase,
    RegisterStoragePhase,
    FundUsdcPhase,
)
from betvex_setup.rpc import Connector, RemoteCallGateway, make_session
from betvex_setup.signers import SignerPool
from betvex_setup.tracker import MatchLifecycleTracker
from betvex_setup.utils.configuration.matches import MatchDefinition
from betvex_setup.utils.configuration.settings import EnvironmentConfig

if TYPE_CHECKING:
    from betvex_setup.phases.base import Phase, PhaseState

log = structlog.get_logger(__name__)


def validate_credentials(environment: EnvironmentConfig) -> None:
    """Make sure every configured key can be decoded before any remote call is made."""
    for principal, keys in environment.credentials.items():
        for index, key in enumerate(keys, start=1):
            try:
                public_key_of(key)
            except Exception as ex:
                raise CredentialsError(
                    f"Key {index} of principal {principal!r} is not a valid ed25519 secret key"
                ) from ex


class SetupRunner:
    """Composes the setup phases into one run.

    The phases run strictly one after another::

        preflight -> stake -> create_accounts -> fund_near -> register_usdc
        -> fund_usdc -> create_matches -> betting -> lifecycle -> claims

    Everything up to and including ``create_matches`` is fatal: the first
    error is raised and ends the run. Betting, lifecycle and claims log
    failures of single items and carry on.
    """

    def __init__(
        self,
        environment: EnvironmentConfig,
        definition: SetupDefinition,
        matches: List[MatchDefinition],
        rng: Optional[random.Random] = None,
        connector: Connector = connect,
        phase_state_callback: Optional[Callable[["SetupRunner", "Phase", "PhaseState"], None]] = None,
    ) -> None:
        self.environment = environment
        self.definition = definition
        self.settings = definition.settings
        self.matches = list(matches)
        self.rng = rng or random.Random()
        self.phase_state_callback = phase_state_callback

        validate_credentials(environment)
        self.signer_pool = SignerPool(environment.credentials)
        # New accounts are created with the public key of the first main key,
        # which then signs all of their transactions.
        self.bettor_credential = environment.main_keys[0]
        self.bettor_public_key = public_key_of(self.bettor_credential)

        self.session = make_session(self.settings.rpc.timeout)
        self.gateway = RemoteCallGateway(
            signer_pool=self.signer_pool,
            account_ids=environment.account_ids,
            rpc_endpoint=environment.rpc_endpoint,
            session=self.session,
            connector=connector,
        )
        self.tracker = MatchLifecycleTracker()
        self.accounts: List[BettorAccount] = []
        self.plan = LifecyclePlan()
        self.phases: List["Phase"] = []

        log.info(
            "Setup runner ready",
            main_account=environment.account_ids[PRINCIPAL_MAIN],
            rpc_endpoint=environment.rpc_endpoint,
            matches=len(self.matches),
            signer_pool=self.signer_pool,
        )

    def run_phase(self, phase_class):
        phase = phase_class(self)
        self.phases.append(phase)
        return phase()

    def run_preflight(self) -> None:
        self.run_phase(PreflightPhase)

    def run_setup(self) -> None:
        self.run_preflight()
        if self.settings.preflight.stake:
            self.run_phase(StakePhase)
        else:
            log.info("Staking disabled, skipping")

        for phase_class in (CreateAccountsPhase, FundNearPhase, RegisterStoragePhase, FundUsdcPhase):
            self.run_phase(phase_class)
        log.info("All accounts created and funded", accounts=[str(a) for a in self.accounts])

        self.run_phase(CreateMatchesPhase)

        self.plan = plan_lifecycle(self.matches, self.settings.lifecycle, self.rng)
        self.run_phase(BettingPhase)
        self.run_phase(LifecyclePhase)
        self.run_phase(ClaimsPhase)

        log.info("Setup finished", **self.tracker.summary())

    def phase_state_changed(self, phase: "Phase", state: "PhaseState") -> None:
        if self.phase_state_callback:
            self.phase_state_callback(self, phase, state)
