from unittest import mock

import pytest

from betvex_setup import near


@pytest.fixture
def near_api():
    with mock.patch("betvex_setup.near.near_api") as patched:
        yield patched


def test_public_key_of_prefixes_key_type(near_api):
    near_api.signer.KeyPair.return_value.encoded_public_key.return_value = "8fBp1X"

    assert near.public_key_of("ed25519:secret") == "ed25519:8fBp1X"
    near_api.signer.KeyPair.assert_called_once_with("ed25519:secret")


def test_connection_binds_account_and_key(near_api):
    connection = near.connect("http://rpc.test", "main.testnet", "ed25519:secret")

    near_api.providers.JsonProvider.assert_called_once_with("http://rpc.test")
    near_api.signer.Signer.assert_called_once_with(
        "main.testnet", near_api.signer.KeyPair.return_value
    )
    near_api.account.Account.assert_called_once_with(
        near_api.providers.JsonProvider.return_value,
        near_api.signer.Signer.return_value,
        "main.testnet",
    )
    assert repr(connection) == "<NearConnection main.testnet>"


def test_function_call_attaches_deposit_as_amount(near_api):
    connection = near.connect("http://rpc.test", "main.testnet", "ed25519:secret")
    account = near_api.account.Account.return_value

    connection.function_call("usdc.testnet", "ft_transfer", {"amount": "1"}, gas=5, deposit=1)
    connection.send_money("user-1.testnet", 42)

    account.function_call.assert_called_once_with(
        "usdc.testnet", "ft_transfer", {"amount": "1"}, gas=5, amount=1
    )
    account.send_money.assert_called_once_with("user-1.testnet", 42)
