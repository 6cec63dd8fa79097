"""Signed NEAR connections, bound to one account and one access key."""
from typing import Any, Dict

import near_api.account
import near_api.providers
import near_api.signer
import structlog

log = structlog.get_logger(__name__)


def public_key_of(credential: str) -> str:
    """Return the ``ed25519:<base58>`` public key for the secret key `credential`."""
    key_pair = near_api.signer.KeyPair(credential)
    return f"ed25519:{key_pair.encoded_public_key()}"


class NearConnection:
    """A NEAR account handle able to sign and submit transactions.

    Creating the connection already talks to the RPC node: the account state
    and the nonce of the access key are fetched up front.
    """

    def __init__(self, rpc_endpoint: str, account_id: str, credential: str) -> None:
        self.account_id = account_id
        provider = near_api.providers.JsonProvider(rpc_endpoint)
        signer = near_api.signer.Signer(account_id, near_api.signer.KeyPair(credential))
        self._account = near_api.account.Account(provider, signer, account_id)

    def __repr__(self) -> str:
        return f"<NearConnection {self.account_id}>"

    def function_call(
        self, contract_id: str, method: str, args: Dict[str, Any], gas: int, deposit: int
    ) -> Dict[str, Any]:
        return self._account.function_call(contract_id, method, args, gas=gas, amount=deposit)

    def send_money(self, receiver_id: str, amount: int) -> Dict[str, Any]:
        return self._account.send_money(receiver_id, amount)


def connect(rpc_endpoint: str, account_id: str, credential: str) -> NearConnection:
    return NearConnection(rpc_endpoint, account_id, credential)
