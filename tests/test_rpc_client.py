from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from runestone_codec.config import RPCConfig
from runestone_codec.rpc_client import (
    NodeRPCClient,
    RPCError,
    RPCTransportError,
    format_rpc_hint,
)
from runestone_codec.runestone import Runestone
from runestone_codec.transaction import Transaction


class FakeResponse:
    def __init__(self, body: Any, status_code: int = 200) -> None:
        self._body = body
        self.status_code = status_code
        self.url = "http://127.0.0.1:8332"
        self.text = body if isinstance(body, str) else json.dumps(body)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._body, str):
            raise ValueError("not json")
        return self._body


class FakeSession:
    def __init__(self, response: FakeResponse | Exception) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _client(response: FakeResponse | Exception, wallet: str | None = None) -> tuple[NodeRPCClient, FakeSession]:
    client = NodeRPCClient(RPCConfig(user="user", password="pass", wallet=wallet))
    session = FakeSession(response)
    client._session = session  # type: ignore[assignment]
    return client, session


def test_call_returns_result_and_sends_json_rpc_payload() -> None:
    client, session = _client(FakeResponse({"result": 812345, "error": None}))

    assert client.getblockcount() == 812345

    call = session.calls[0]
    assert call["url"] == "http://127.0.0.1:8332"
    assert call["auth"] == ("user", "pass")
    payload = json.loads(call["data"])
    assert payload["method"] == "getblockcount"
    assert payload["params"] == []


def test_wallet_is_added_to_url() -> None:
    client, session = _client(FakeResponse({"result": None}), wallet="runes")

    client.call("getwalletinfo")

    assert session.calls[0]["url"] == "http://127.0.0.1:8332/wallet/runes"


def test_error_body_raises_rpc_error_even_with_http_500() -> None:
    body = {"result": None, "error": {"code": -5, "message": "No such mempool or blockchain transaction"}}
    client, _ = _client(FakeResponse(body, status_code=500))

    with pytest.raises(RPCError) as excinfo:
        client.getrawtransaction("00" * 32)

    assert excinfo.value.code == -5
    assert format_rpc_hint(excinfo.value) is not None


def test_connection_failure_raises_transport_error() -> None:
    client, _ = _client(requests.ConnectionError("refused"))

    with pytest.raises(RPCTransportError):
        client.getblockcount()


def test_unauthorized_response_mentions_credentials() -> None:
    client, _ = _client(FakeResponse("", status_code=401))

    with pytest.raises(RPCTransportError, match="Unauthorized") as excinfo:
        client.getblockcount()

    assert excinfo.value.status_code == 401


def test_non_json_success_is_malformed() -> None:
    client, _ = _client(FakeResponse("<html>"))

    with pytest.raises(RPCTransportError, match="malformed"):
        client.getblockcount()


def test_get_transaction_parses_raw_hex() -> None:
    runestone = Runestone(claim=7)
    script = runestone.encipher()
    raw_hex = (
        (2).to_bytes(4, "little")
        + b"\x01"
        + b"\x11" * 32
        + (0).to_bytes(4, "little")
        + b"\x00"
        + b"\xff\xff\xff\xff"
        + b"\x01"
        + (0).to_bytes(8, "little")
        + bytes([len(script)])
        + script
        + (0).to_bytes(4, "little")
    ).hex()
    client, session = _client(FakeResponse({"result": raw_hex}))

    transaction = client.get_transaction("ab" * 32)

    assert isinstance(transaction, Transaction)
    assert Runestone.from_transaction(transaction) == runestone
    assert json.loads(session.calls[0]["data"])["params"] == ["ab" * 32, 0]


def test_get_transaction_rejects_verbose_result() -> None:
    client, _ = _client(FakeResponse({"result": {"txid": "ab"}}))

    with pytest.raises(RPCTransportError):
        client.get_transaction("ab" * 32)


def test_format_rpc_hint_ignores_other_errors() -> None:
    assert format_rpc_hint(RPCError(-1, "boom")) is None
    assert format_rpc_hint(RPCError(-8, "parameter 1 must be hexadecimal string")) is not None
