import json

import structlog

from betvex_setup.constants import ONE_NEAR, ONE_USDC, ONE_VEX, ONE_YOCTO, PRINCIPAL_MAIN
from betvex_setup.exceptions import PhaseError, PreconditionError, RemoteCallError
from betvex_setup.phases.base import Phase
from betvex_setup.rpc import Resources

log = structlog.get_logger(__name__)


class PreflightPhase(Phase):
    """Check the main account can pay for the whole run.

    The main account must hold at least the configured USDC, VEX and NEAR
    balances, otherwise a :class:`PreconditionError` is raised listing every
    balance that falls short.
    """

    _name = "preflight"

    def _run(self, *args, **kwargs):
        gateway = self._runner.gateway
        contracts = self._runner.settings.contracts
        thresholds = self._runner.settings.preflight
        main_account = gateway.account_id(PRINCIPAL_MAIN)

        balances = {
            "USDC": int(gateway.view(contracts.usdc, "ft_balance_of", {"account_id": main_account})),
            "VEX": int(gateway.view(contracts.vex, "ft_balance_of", {"account_id": main_account})),
            "NEAR": gateway.native_balance(main_account),
        }
        required = {
            "USDC": (thresholds.usdc_min, ONE_USDC),
            "VEX": (thresholds.vex_min, ONE_VEX),
            "NEAR": (thresholds.near_min, ONE_NEAR),
        }

        shortfalls = []
        for token, balance in balances.items():
            minimum, unit = required[token]
            log.info(
                "Main account balance",
                account_id=main_account,
                token=token,
                balance=balance / unit,
                required=minimum,
            )
            if balance < minimum * unit:
                shortfalls.append(
                    f"Insufficient {token} balance. Required: {minimum:,} {token}, "
                    f"Found: {balance / unit:,} {token}"
                )

        if shortfalls:
            raise PreconditionError(f"{main_account}: " + "; ".join(shortfalls))
        return balances


class StakePhase(Phase):
    """Stake VEX from the main account into the betting contract.

    Staking is a precondition for the rest of the run, a failure is fatal.
    """

    _name = "stake"

    def _run(self, *args, **kwargs):
        contracts = self._runner.settings.contracts
        amount = self._runner.settings.preflight.stake_amount
        transfer_args = {
            "receiver_id": contracts.betting,
            "amount": str(amount * ONE_VEX),
            "msg": json.dumps("Stake"),
        }
        log.info("Staking VEX tokens", amount=amount)
        try:
            return self.retry(
                lambda: self._runner.gateway.invoke(
                    PRINCIPAL_MAIN,
                    contracts.vex,
                    "ft_transfer_call",
                    transfer_args,
                    Resources(deposit=ONE_YOCTO),
                )
            )
        except RemoteCallError as ex:
            raise PhaseError(self._name, message=f"Staking {amount} VEX failed: {ex}") from ex
