import base64
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import requests
import structlog
from requests import Session

from betvex_setup.constants import GAS_300_TGAS
from betvex_setup.exceptions import ConfigurationError, RemoteCallError
from betvex_setup.near import NearConnection, connect
from betvex_setup.signers import SignerPool
from betvex_setup.utils import TimeOutHTTPAdapter

log = structlog.get_logger(__name__)

Connector = Callable[[str, str, str], NearConnection]


@dataclass(frozen=True)
class Resources:
    """Gas and attached deposit (yoctoNEAR) of a single function call."""

    gas: int = GAS_300_TGAS
    deposit: int = 0


def make_session(timeout: float) -> Session:
    session = Session()
    session.mount("http", TimeOutHTTPAdapter(timeout=timeout))
    session.mount("https", TimeOutHTTPAdapter(timeout=timeout))
    return session


class RemoteCallGateway:
    """Performs exactly one call against the NEAR RPC per invocation.

    State changing calls bind a fresh connection using the next key of the
    principal from the :class:`SignerPool`, read-only queries go through plain
    JSON-RPC. There are no retries here, callers wrap invocations with
    :func:`betvex_setup.utils.retry.with_retry`. Every failure is raised as a
    :class:`RemoteCallError` with the original exception as its cause.
    """

    def __init__(
        self,
        signer_pool: SignerPool,
        account_ids: Mapping[str, str],
        rpc_endpoint: str,
        session: Session,
        connector: Connector = connect,
    ) -> None:
        self.signer_pool = signer_pool
        self.account_ids = dict(account_ids)
        self.rpc_endpoint = rpc_endpoint
        self.session = session
        self._connect = connector

    def account_id(self, principal: str) -> str:
        try:
            return self.account_ids[principal]
        except KeyError:
            raise ConfigurationError(f"No account id configured for {principal!r}") from None

    def invoke(
        self,
        principal: str,
        contract_id: str,
        method: str,
        args: Dict[str, Any],
        resources: Resources = Resources(),
    ) -> Dict[str, Any]:
        """Call `method` on `contract_id`, signed by the next key of `principal`."""
        account_id = self.account_id(principal)
        credential = self.signer_pool.next_credential(principal)
        return self.invoke_as(account_id, credential, contract_id, method, args, resources)

    def invoke_as(
        self,
        account_id: str,
        credential: str,
        contract_id: str,
        method: str,
        args: Dict[str, Any],
        resources: Resources = Resources(),
    ) -> Dict[str, Any]:
        """Like :meth:`invoke`, for accounts that are not part of the signer pool."""
        log.debug(
            "Function call",
            account_id=account_id,
            contract_id=contract_id,
            method=method,
            args=args,
            gas=resources.gas,
            deposit=resources.deposit,
        )
        try:
            connection = self._connect(self.rpc_endpoint, account_id, credential)
            return connection.function_call(
                contract_id, method, args, gas=resources.gas, deposit=resources.deposit
            )
        except Exception as ex:
            raise RemoteCallError(
                f"{method} on {contract_id} by {account_id} failed: {ex!r}",
                account_id=account_id,
                method=method,
                cause=ex,
            ) from ex

    def send_money(self, principal: str, receiver_id: str, amount: int) -> Dict[str, Any]:
        """Transfer `amount` yoctoNEAR from `principal` to `receiver_id`."""
        account_id = self.account_id(principal)
        credential = self.signer_pool.next_credential(principal)
        log.debug("Send money", account_id=account_id, receiver_id=receiver_id, amount=amount)
        try:
            connection = self._connect(self.rpc_endpoint, account_id, credential)
            return connection.send_money(receiver_id, amount)
        except Exception as ex:
            raise RemoteCallError(
                f"Transfer of {amount} yoctoNEAR from {account_id} to {receiver_id} failed: {ex!r}",
                account_id=account_id,
                method="send_money",
                cause=ex,
            ) from ex

    def view(
        self,
        contract_id: str,
        method: str,
        args: Optional[Dict[str, Any]] = None,
        finality: str = "optimistic",
    ) -> Any:
        """Run the read-only `method` of `contract_id` and return its decoded JSON result."""
        args_base64 = base64.b64encode(json.dumps(args or {}).encode()).decode()
        result = self._query(
            {
                "request_type": "call_function",
                "account_id": contract_id,
                "method_name": method,
                "args_base64": args_base64,
                "finality": finality,
            },
            method=method,
        )
        try:
            return json.loads(bytes(result["result"]).decode())
        except (KeyError, TypeError, ValueError) as ex:
            raise RemoteCallError(
                f"Undecodable result of view {method} on {contract_id}: {result!r}",
                account_id=contract_id,
                method=method,
                cause=ex,
            ) from ex

    def native_balance(self, account_id: str, finality: str = "optimistic") -> int:
        """Total NEAR balance of `account_id` in yoctoNEAR (available plus locked)."""
        result = self._query(
            {"request_type": "view_account", "account_id": account_id, "finality": finality},
            method="view_account",
        )
        try:
            return int(result["amount"]) + int(result.get("locked", 0))
        except (KeyError, TypeError, ValueError) as ex:
            raise RemoteCallError(
                f"Unexpected view_account response for {account_id}: {result!r}",
                account_id=account_id,
                method="view_account",
                cause=ex,
            ) from ex

    def _query(self, params: Dict[str, Any], method: str) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": "dontcare", "method": "query", "params": params}
        account_id = params.get("account_id")
        try:
            resp = self.session.post(self.rpc_endpoint, json=payload)
            resp.raise_for_status()
            content = resp.json()
        except (requests.RequestException, ValueError) as ex:
            raise RemoteCallError(
                f"Query {method} for {account_id} failed: {ex!r}",
                account_id=account_id,
                method=method,
                cause=ex,
            ) from ex

        error = content.get("error") or (content.get("result") or {}).get("error")
        if error:
            raise RemoteCallError(
                f"Query {method} for {account_id} rejected: {error}",
                account_id=account_id,
                method=method,
            )
        return content["result"]
