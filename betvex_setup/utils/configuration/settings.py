import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import structlog
from dotenv import dotenv_values

from betvex_setup.constants import (
    ACCOUNT_BET_CEILING,
    ACCOUNT_CREATION_DEPOSIT,
    ACCOUNT_ID_PREFIX,
    ACCOUNT_NEAR_FUNDING,
    ACCOUNT_USDC_FUNDING,
    BET_DELAY,
    BETTING_CONTRACT,
    CANCEL_COUNT,
    CANCEL_DELAY,
    CLAIM_DELAY,
    DEFAULT_ACCOUNT_COUNT,
    DEFAULT_KEY_COUNT,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
    DEFAULT_RPC_ENDPOINT,
    END_BETTING_COUNT,
    END_BETTING_DELAY,
    FINISH_COUNT,
    FINISH_DELAY,
    FINISHED_MATCH_BIAS,
    LIFECYCLE_WAVE_DELAY,
    MAIN_ACCOUNT_NEAR_MIN,
    MAIN_ACCOUNT_USDC_MIN,
    MAIN_ACCOUNT_VEX_MIN,
    MATCH_BATCH_DELAY,
    MATCH_BATCH_SIZE,
    MAX_BET_AMOUNT,
    MAX_BETS_PER_ACCOUNT,
    MIN_BETS_PER_ACCOUNT,
    NETWORK_ROOT_ACCOUNT,
    PRINCIPAL_ADMIN,
    PRINCIPAL_MAIN,
    STAKE_AMOUNT,
    TIMEOUT,
    USDC_CONTRACT,
    VEX_CONTRACT,
    WINNER_BIAS,
)
from betvex_setup.exceptions.config import CredentialsError, SettingsConfigurationError
from betvex_setup.utils.configuration.base import ConfigMapping

log = structlog.get_logger(__name__)


@dataclass
class EnvironmentConfig:
    """Account ids, signing keys and the RPC endpoint of one run.

    Loaded from the process environment, optionally merged with a ``.env`` file.
    """

    main_account_id: str
    admin_account_id: str
    main_keys: List[str]
    admin_keys: List[str]
    rpc_endpoint: str = DEFAULT_RPC_ENDPOINT
    credentials: Dict[str, List[str]] = field(init=False)
    account_ids: Dict[str, str] = field(init=False)

    def __post_init__(self):
        self.credentials = {PRINCIPAL_MAIN: self.main_keys, PRINCIPAL_ADMIN: self.admin_keys}
        self.account_ids = {
            PRINCIPAL_MAIN: self.main_account_id,
            PRINCIPAL_ADMIN: self.admin_account_id,
        }


def _load_keys(values: Mapping[str, Optional[str]], prefix: str, key_count: int) -> List[str]:
    keys = []
    for index in range(1, key_count + 1):
        name = f"{prefix}_{index}"
        key = values.get(name)
        if not key:
            raise CredentialsError(f"Missing {name} in environment variables")
        keys.append(key)
    return keys


def load_environment(
    env_file: Optional[Path] = None,
    key_count: int = DEFAULT_KEY_COUNT,
    environ: Optional[Mapping[str, str]] = None,
) -> EnvironmentConfig:
    """Build the :class:`EnvironmentConfig` from environment variables.

    Values from `env_file` are used as defaults, the real environment takes
    precedence. Expected variables::

        MAIN_ACCOUNT_ID, ADMIN_ACCOUNT_ID,
        MAIN_ACCOUNT_KEY_1 .. MAIN_ACCOUNT_KEY_<key_count>,
        ADMIN_ACCOUNT_KEY_1 .. ADMIN_ACCOUNT_KEY_<key_count>,
        NEAR_RPC_ENDPOINT (optional)

    :raises CredentialsError: if an account id or a key is missing.
    """
    if key_count < 1:
        raise CredentialsError(f"key_count must be at least 1, not {key_count}")

    values: Dict[str, Optional[str]] = {}
    if env_file is not None:
        values.update(dotenv_values(env_file))
    values.update(os.environ if environ is None else environ)

    main_account_id = values.get("MAIN_ACCOUNT_ID")
    admin_account_id = values.get("ADMIN_ACCOUNT_ID")
    if not main_account_id:
        raise CredentialsError("Missing MAIN_ACCOUNT_ID in environment variables")
    if not admin_account_id:
        raise CredentialsError("Missing ADMIN_ACCOUNT_ID in environment variables")

    return EnvironmentConfig(
        main_account_id=main_account_id,
        admin_account_id=admin_account_id,
        main_keys=_load_keys(values, "MAIN_ACCOUNT_KEY", key_count),
        admin_keys=_load_keys(values, "ADMIN_ACCOUNT_KEY", key_count),
        rpc_endpoint=values.get("NEAR_RPC_ENDPOINT") or DEFAULT_RPC_ENDPOINT,
    )


class SettingsSection(ConfigMapping):
    CONFIGURATION_ERROR = SettingsConfigurationError


class RPCSettingsConfig(SettingsSection):
    """Remote call settings.

    Example definition::

        settings:
          timeout: 30
          retry_attempts: 3
          retry_delay: 1.0
    """

    SECTION = "settings"

    def validate(self):
        self.assert_option(self.timeout > 0, "settings.timeout must be positive")
        self.assert_option(self.retry_attempts >= 1, "settings.retry_attempts must be >= 1")
        self.assert_option(self.retry_delay >= 0, "settings.retry_delay must be >= 0")

    @property
    def timeout(self) -> float:
        """Timeout in seconds for a single JSON-RPC request."""
        return self.get_number("timeout", TIMEOUT)

    @property
    def retry_attempts(self) -> int:
        return self.get_number("retry_attempts", DEFAULT_RETRY_ATTEMPTS, int)

    @property
    def retry_delay(self) -> float:
        return self.get_number("retry_delay", DEFAULT_RETRY_DELAY)


class ContractsConfig(SettingsSection):
    """Account ids of the contracts we talk to.

    Example definition::

        contracts:
          betting: vex-contract-12.testnet
          usdc: usdc.betvex.testnet
          vex: token.betvex.testnet
          network_root: testnet
    """

    SECTION = "contracts"

    def validate(self):
        for key in ("betting", "usdc", "vex", "network_root"):
            self.assert_option(
                isinstance(self.dict.get(key, ""), str), f"contracts.{key} must be a string"
            )

    @property
    def betting(self) -> str:
        return self.dict.get("betting", BETTING_CONTRACT)

    @property
    def usdc(self) -> str:
        return self.dict.get("usdc", USDC_CONTRACT)

    @property
    def vex(self) -> str:
        return self.dict.get("vex", VEX_CONTRACT)

    @property
    def network_root(self) -> str:
        return self.dict.get("network_root", NETWORK_ROOT_ACCOUNT)


class PreflightConfig(SettingsSection):
    """Minimum balances of the main account, in whole tokens.

    Example definition::

        preflight:
          usdc_min: 10000
          vex_min: 100000
          near_min: 5
          stake: true
          stake_amount: 100000
    """

    SECTION = "preflight"

    def validate(self):
        for key in ("usdc_min", "vex_min", "near_min", "stake_amount"):
            self.assert_option(getattr(self, key) >= 0, f"preflight.{key} must be >= 0")
        self.assert_option(isinstance(self.stake, bool), "preflight.stake must be a boolean")

    @property
    def usdc_min(self) -> int:
        return self.get_number("usdc_min", MAIN_ACCOUNT_USDC_MIN, int)

    @property
    def vex_min(self) -> int:
        return self.get_number("vex_min", MAIN_ACCOUNT_VEX_MIN, int)

    @property
    def near_min(self) -> int:
        return self.get_number("near_min", MAIN_ACCOUNT_NEAR_MIN, int)

    @property
    def stake(self) -> bool:
        """Whether to stake VEX into the betting contract before provisioning.

        Defaults to True. When enabled, a failed stake aborts the run.
        """
        return self.dict.get("stake", True)

    @property
    def stake_amount(self) -> int:
        return self.get_number("stake_amount", STAKE_AMOUNT, int)


class AccountsConfig(SettingsSection):
    """Bettor account provisioning.

    Example definition::

        accounts:
          count: 10
          prefix: user
          creation_deposit: 500000000000000000000000  # yoctoNEAR
          near_funding: 500000000000000000000000  # yoctoNEAR
          usdc_funding: 1000  # USDC
    """

    SECTION = "accounts"

    def validate(self):
        self.assert_option(self.count >= 1, "accounts.count must be >= 1")
        self.assert_option(self.creation_deposit >= 0, "accounts.creation_deposit must be >= 0")
        self.assert_option(self.near_funding >= 0, "accounts.near_funding must be >= 0")
        self.assert_option(self.usdc_funding >= 0, "accounts.usdc_funding must be >= 0")

    @property
    def count(self) -> int:
        return self.get_number("count", DEFAULT_ACCOUNT_COUNT, int)

    @property
    def prefix(self) -> str:
        return str(self.dict.get("prefix", ACCOUNT_ID_PREFIX))

    @property
    def creation_deposit(self) -> int:
        return self.get_number("creation_deposit", ACCOUNT_CREATION_DEPOSIT, int)

    @property
    def near_funding(self) -> int:
        return self.get_number("near_funding", ACCOUNT_NEAR_FUNDING, int)

    @property
    def usdc_funding(self) -> int:
        return self.get_number("usdc_funding", ACCOUNT_USDC_FUNDING, int)


class MatchesConfig(SettingsSection):
    SECTION = "matches"

    def validate(self):
        self.assert_option(self.batch_size >= 1, "matches.batch_size must be >= 1")
        self.assert_option(self.batch_delay >= 0, "matches.batch_delay must be >= 0")

    @property
    def batch_size(self) -> int:
        return self.get_number("batch_size", MATCH_BATCH_SIZE, int)

    @property
    def batch_delay(self) -> float:
        return self.get_number("batch_delay", MATCH_BATCH_DELAY)


class BettingConfig(SettingsSection):
    """Randomized betting.

    Example definition::

        betting:
          min_bets: 8
          max_bets: 12
          max_bet_amount: 100  # USDC
          account_ceiling: 1000  # USDC
          finished_match_bias: 0.9
          winner_bias: 0.8
          delay: 0.5
    """

    SECTION = "betting"

    def validate(self):
        self.assert_option(
            1 <= self.min_bets <= self.max_bets, "betting.min_bets must be in [1, max_bets]"
        )
        self.assert_option(self.max_bet_amount >= 1, "betting.max_bet_amount must be >= 1")
        self.assert_option(self.account_ceiling >= 1, "betting.account_ceiling must be >= 1")
        for key in ("finished_match_bias", "winner_bias"):
            self.assert_option(0 <= getattr(self, key) <= 1, f"betting.{key} must be in [0, 1]")
        self.assert_option(self.delay >= 0, "betting.delay must be >= 0")

    @property
    def min_bets(self) -> int:
        return self.get_number("min_bets", MIN_BETS_PER_ACCOUNT, int)

    @property
    def max_bets(self) -> int:
        return self.get_number("max_bets", MAX_BETS_PER_ACCOUNT, int)

    @property
    def max_bet_amount(self) -> int:
        return self.get_number("max_bet_amount", MAX_BET_AMOUNT, int)

    @property
    def account_ceiling(self) -> int:
        return self.get_number("account_ceiling", ACCOUNT_BET_CEILING, int)

    @property
    def finished_match_bias(self) -> float:
        """Probability that a bet targets one of the matches planned to finish."""
        return self.get_number("finished_match_bias", FINISHED_MATCH_BIAS)

    @property
    def winner_bias(self) -> float:
        """Probability that a bet on a planned-to-finish match backs the planned winner."""
        return self.get_number("winner_bias", WINNER_BIAS)

    @property
    def delay(self) -> float:
        return self.get_number("delay", BET_DELAY)


class LifecycleConfig(SettingsSection):
    """How many matches to end / finish / cancel, and the pacing in between.

    Example definition::

        lifecycle:
          end_betting_count: 6
          finish_count: 4
          cancel_count: 2
          end_betting_delay: 1.0
          wave_delay: 10.0
          cancel_delay: 1.0
          finish_delay: 5.0
    """

    SECTION = "lifecycle"

    def validate(self):
        for key in ("end_betting_count", "finish_count", "cancel_count"):
            self.assert_option(getattr(self, key) >= 0, f"lifecycle.{key} must be >= 0")
        self.assert_option(
            self.finish_count <= self.end_betting_count,
            "lifecycle.finish_count must not exceed lifecycle.end_betting_count",
        )
        for key in ("end_betting_delay", "wave_delay", "cancel_delay", "finish_delay"):
            self.assert_option(getattr(self, key) >= 0, f"lifecycle.{key} must be >= 0")

    @property
    def end_betting_count(self) -> int:
        return self.get_number("end_betting_count", END_BETTING_COUNT, int)

    @property
    def finish_count(self) -> int:
        return self.get_number("finish_count", FINISH_COUNT, int)

    @property
    def cancel_count(self) -> int:
        return self.get_number("cancel_count", CANCEL_COUNT, int)

    @property
    def end_betting_delay(self) -> float:
        return self.get_number("end_betting_delay", END_BETTING_DELAY)

    @property
    def wave_delay(self) -> float:
        return self.get_number("wave_delay", LIFECYCLE_WAVE_DELAY)

    @property
    def cancel_delay(self) -> float:
        return self.get_number("cancel_delay", CANCEL_DELAY)

    @property
    def finish_delay(self) -> float:
        return self.get_number("finish_delay", FINISH_DELAY)


class ClaimsConfig(SettingsSection):
    SECTION = "claims"

    def validate(self):
        self.assert_option(self.delay >= 0, "claims.delay must be >= 0")

    @property
    def delay(self) -> float:
        return self.get_number("delay", CLAIM_DELAY)


class SettingsConfig:
    """All tunables of a run, each section falling back to the built-in defaults.

    Example definition::

        >setup.yaml
        settings:
          <RPCSettingsConfig>
        contracts:
          <ContractsConfig>
        preflight:
          <PreflightConfig>
        accounts:
          <AccountsConfig>
        matches:
          <MatchesConfig>
        betting:
          <BettingConfig>
        lifecycle:
          <LifecycleConfig>
        claims:
          <ClaimsConfig>
    """

    def __init__(self, loaded_definition: Optional[dict] = None) -> None:
        loaded_definition = loaded_definition or {}
        self.rpc = RPCSettingsConfig(loaded_definition)
        self.contracts = ContractsConfig(loaded_definition)
        self.preflight = PreflightConfig(loaded_definition)
        self.accounts = AccountsConfig(loaded_definition)
        self.matches = MatchesConfig(loaded_definition)
        self.betting = BettingConfig(loaded_definition)
        self.lifecycle = LifecycleConfig(loaded_definition)
        self.claims = ClaimsConfig(loaded_definition)

    def __repr__(self) -> str:
        return (
            f"<SettingsConfig rpc={self.rpc} contracts={self.contracts} "
            f"accounts={self.accounts} betting={self.betting} lifecycle={self.lifecycle}>"
        )
