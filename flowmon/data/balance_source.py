from __future__ import annotations

import itertools
import logging
from decimal import Decimal
from typing import Any, Optional

import requests

from ..config import AppConfig
from ..core.series import Sample, utc_now_ms
from ..utils.retry import with_retries


logger = logging.getLogger(__name__)

# keccak256("balanceOf(address)")[:4]
BALANCE_OF_SELECTOR = "0x70a08231"


class BalanceSourceError(RuntimeError):
    """The balance could not be read from the RPC endpoint."""


def encode_balance_of(holder: str) -> str:
    addr = holder.lower().removeprefix("0x")
    if len(addr) != 40:
        raise ValueError(f"not an address: {holder!r}")
    int(addr, 16)  # validates hex
    return BALANCE_OF_SELECTOR + addr.rjust(64, "0")


def decode_uint256(result: Any) -> int:
    if not isinstance(result, str) or not result.startswith("0x"):
        raise BalanceSourceError(f"unexpected eth_call result: {result!r}")
    payload = result[2:]
    if not payload:
        raise BalanceSourceError("empty eth_call result (is the token address a contract?)")
    try:
        return int(payload, 16)
    except ValueError as exc:
        raise BalanceSourceError(f"non-hex eth_call result: {result!r}") from exc


def format_units(raw: int, decimals: int) -> float:
    """Convert a fixed-point token amount to natural units."""
    return float(Decimal(raw).scaleb(-decimals))


class Erc20BalanceSource:
    """Read an ERC-20 balance through Ethereum JSON-RPC ``eth_call``."""

    def __init__(
        self,
        rpc_url: str,
        token_address: str,
        holder_address: str,
        decimals: int = 6,
        timeout_sec: float = 10,
        max_attempts: int = 1,
        backoff_base_sec: float = 0.5,
        backoff_cap_sec: float = 2.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.token_address = token_address
        self.holder_address = holder_address
        self.decimals = decimals
        self.timeout_sec = timeout_sec
        self.max_attempts = max_attempts
        self.backoff_base_sec = backoff_base_sec
        self.backoff_cap_sec = backoff_cap_sec
        self._ids = itertools.count(1)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": "usdt-flow-monitor/0.1",
        })

    @classmethod
    def from_config(cls, config: AppConfig) -> "Erc20BalanceSource":
        rt = config.runtime
        return cls(
            rpc_url=config.env.ETH_RPC_URL,
            token_address=rt.token_address,
            holder_address=rt.monitored_address,
            decimals=rt.token_decimals,
            timeout_sec=rt.network_timeout_sec,
            max_attempts=rt.max_attempts,
            backoff_base_sec=rt.backoff_base_sec,
            backoff_cap_sec=rt.backoff_cap_sec,
        )

    def _call(self) -> int:
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [
                {"to": self.token_address, "data": encode_balance_of(self.holder_address)},
                "latest",
            ],
        }
        try:
            resp = self.session.post(self.rpc_url, json=body, timeout=self.timeout_sec)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise BalanceSourceError(f"RPC request failed: {exc}") from exc
        if not isinstance(data, dict):
            raise BalanceSourceError(f"malformed RPC response: {data!r}")
        if data.get("error"):
            err = data["error"]
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise BalanceSourceError(f"RPC error: {message}")
        return decode_uint256(data.get("result"))

    def fetch_raw(self) -> int:
        return with_retries(
            self._call,
            max_attempts=self.max_attempts,
            base_seconds=self.backoff_base_sec,
            cap_seconds=self.backoff_cap_sec,
            retry_on=(BalanceSourceError,),
        )

    def fetch(self) -> Sample:
        raw = self.fetch_raw()
        value = format_units(raw, self.decimals)
        return Sample(timestamp=utc_now_ms(), value=value)
