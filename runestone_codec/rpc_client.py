"""JSON-RPC client for Bitcoin Core style nodes.

Only the read paths needed to fetch transactions for Runestone decoding are
exposed. Configuration is shared via :func:`load_rpc_config` so CLI commands
and library callers reuse the same connection settings.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import RPCConfig, load_rpc_config
from .transaction import Transaction

logger = logging.getLogger(__name__)


class RPCError(RuntimeError):
    """Raised when the node responds with an RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error: RPCError) -> str | None:
    """Return a short remediation hint for common transaction lookup failures."""

    if error.code == -5 and "No such mempool or blockchain transaction" in error.message:
        return (
            "The node does not know this transaction. Enable txindex=1 on the node or "
            "pass the raw transaction with --tx-hex instead."
        )
    if error.code == -8 and "parameter 1 must be hexadecimal" in error.message:
        return "The txid must be a 64 character hex string."
    return None


class NodeRPCClient:
    """Thin JSON-RPC client; each helper maps directly to a node method."""

    def __init__(self, config: RPCConfig, timeout: float = 30) -> None:
        self.config = config
        self.timeout = timeout
        self._session = requests.Session()
        self._base_url = config.base_url
        self._wallet = config.wallet

    @classmethod
    def from_env(cls) -> "NodeRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self._url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                auth=(self.config.user, self.config.password),
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure the node is reachable and RUNESTONE_RPC_* variables "
                "(or ~/.runestone.yaml) point to the right host and port."
            ) from exc

        body = self._parse_body(response)
        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        if not response.ok:
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            if response.status_code == 401:
                raise RPCTransportError(
                    "Unauthorized (401). Check RUNESTONE_RPC_USER/RUNESTONE_RPC_PASSWORD or your config file.",
                    status_code=response.status_code,
                )
            raise RPCTransportError(
                f"RPC server returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise RPCTransportError("RPC server returned malformed JSON")
        return body.get("result")

    @staticmethod
    def _parse_body(response: Response) -> Any:
        # Bitcoin Core reports JSON-RPC errors with HTTP 500 and a JSON body,
        # so the body is read before the status code is checked.
        try:
            return response.json()
        except ValueError:
            logger.debug("RPC response was not JSON: %s", response.text)
            return None

    @property
    def _url(self) -> str:
        if self._wallet:
            return f"{self._base_url}/wallet/{self._wallet}"
        return self._base_url

    # Convenience wrappers -------------------------------------------------

    def getblockcount(self) -> int:
        return int(self.call("getblockcount"))

    def getrawtransaction(self, txid: str, verbose: bool = False) -> Any:
        return self.call("getrawtransaction", [txid, int(verbose)])

    def decoderawtransaction(self, raw_tx: str) -> Dict[str, Any]:
        return self.call("decoderawtransaction", [raw_tx])

    def get_transaction(self, txid: str) -> Transaction:
        """Fetch ``txid`` and parse it into a :class:`Transaction`."""

        raw_hex = self.getrawtransaction(txid)
        if not isinstance(raw_hex, str):
            raise RPCTransportError(f"getrawtransaction returned {type(raw_hex).__name__}, expected hex")
        return Transaction.from_hex(raw_hex)
