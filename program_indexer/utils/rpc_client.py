"""Proxied JSON-RPC reads used to enrich webhook events."""

import logging
from typing import Any, List, Optional

import requests

from program_indexer.utils.config import ServerConfig
from program_indexer.utils.exceptions import RpcError, RpcErrorKind

# Header the proxy reads to find the real upstream endpoint
UPSTREAM_RPC_HEADER = "Rpc"

GET_PARSED_TRANSACTION = "getParsedTransaction"
GET_PARSED_ACCOUNTS_DATA = "getParsedAccountsData"


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        rpcx_url: str,
        timeout_in_secs: Optional[float] = None,
    ):
        self.rpc_url = rpc_url
        self.rpcx_url = rpcx_url
        self.timeout_in_secs = timeout_in_secs

    @classmethod
    def from_server_config(cls, server_config: ServerConfig) -> "RpcClient":
        return cls(
            server_config.rpc_url,
            server_config.rpcx_url,
            server_config.rpc_timeout_in_secs,
        )

    def call(self, method: str, params: Any) -> Any:
        """Single round trip through the proxy.

        Returns the `result` member of the response. Raises `RpcError` with kind
        TRANSPORT when the proxy cannot be reached or answers with a non-2xx
        status, and with kind EMPTY_RESULT when the response has no result.
        Nothing is retried here.
        """
        body = {"jsonrpc": "2.0", "id": "0", "method": method, "params": params}
        headers = {
            "Content-Type": "application/json",
            UPSTREAM_RPC_HEADER: self.rpc_url,
        }
        try:
            response = requests.post(
                self.rpcx_url, json=body, headers=headers, timeout=self.timeout_in_secs
            )
        except requests.RequestException as e:
            raise RpcError(RpcErrorKind.TRANSPORT, "RPC error: %s" % e) from e

        if not response.ok:
            logging.warning(
                "[Indexer] RPC request failed",
                extra={"method": method, "status_code": response.status_code},
            )
            raise RpcError(RpcErrorKind.TRANSPORT, "RPC error: %s" % response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise RpcError(RpcErrorKind.TRANSPORT, "RPC error: %s" % e) from e

        result = payload.get("result") if isinstance(payload, dict) else None
        if not result:
            raise RpcError(RpcErrorKind.EMPTY_RESULT, "RPC result missing")
        return result

    def get_parsed_transaction(self, signature: str) -> Any:
        return self.call(
            GET_PARSED_TRANSACTION, [signature, {"commitment": "confirmed"}]
        )

    def get_parsed_accounts_data(self, pubkeys: List[str]) -> Any:
        return self.call(
            GET_PARSED_ACCOUNTS_DATA,
            {"pubkeys": pubkeys, "commitment": "processed", "onlyParsed": True},
        )
