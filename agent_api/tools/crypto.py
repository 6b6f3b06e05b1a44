"""加密资产工具集（crypto）。

- get_token_price: 通过 CoinGecko simple/price 查询行情。
- get_native_balance / get_gas_price / get_block_number: 通过 EVM JSON-RPC 读取链上数据。

所有链上读取都是只读操作，不涉及签名与转账。
"""

import re
from decimal import Decimal
from typing import Any, Dict, List

import httpx

from agent_api.config.settings import settings
from .definitions import Tool, ToolDef, ToolFunc, ToolInputError, ToolParam


ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
WEI_PER_ETHER = Decimal(10) ** 18
WEI_PER_GWEI = Decimal(10) ** 9


class RpcError(RuntimeError):
    """JSON-RPC 节点返回 error 字段。"""


async def _rpc_call(cfg, method: str, params: List[Any]) -> Any:
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    async with httpx.AsyncClient(timeout=cfg.http_timeout, trust_env=False) as client:
        resp = await client.post(cfg.rpc_url, json=payload)
    resp.raise_for_status()
    data = resp.json()
    if data.get("error"):
        err = data["error"]
        raise RpcError(f"{method}: {err.get('message', err)}")
    return data.get("result")


def _hex_to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(str(value), 16)


def _make_token_price_tool(cfg) -> ToolFunc:
    async def _run(args: Dict[str, Any]) -> Dict[str, Any]:
        token = str(args.get("token_id") or "").strip().lower()
        currency = str(args.get("vs_currency") or "usd").strip().lower()
        if not token:
            raise ToolInputError("token_id is required")
        async with httpx.AsyncClient(timeout=cfg.http_timeout, trust_env=False) as client:
            resp = await client.get(
                f"{cfg.coingecko_base_url}/simple/price",
                params={"ids": token, "vs_currencies": currency},
            )
        resp.raise_for_status()
        data = resp.json()
        if token not in data or currency not in data[token]:
            raise ToolInputError(f"no price for {token!r} in {currency!r}")
        return {"token_id": token, "vs_currency": currency, "price": data[token][currency]}

    return _run


def _make_native_balance_tool(cfg) -> ToolFunc:
    async def _run(args: Dict[str, Any]) -> Dict[str, Any]:
        address = str(args.get("address") or "").strip()
        if not ADDRESS_RE.match(address):
            raise ToolInputError(f"invalid address {address!r}")
        wei = _hex_to_int(await _rpc_call(cfg, "eth_getBalance", [address, "latest"]))
        return {"address": address, "wei": str(wei), "ether": str(Decimal(wei) / WEI_PER_ETHER)}

    return _run


def _make_gas_price_tool(cfg) -> ToolFunc:
    async def _run(args: Dict[str, Any]) -> Dict[str, Any]:
        wei = _hex_to_int(await _rpc_call(cfg, "eth_gasPrice", []))
        return {"wei": str(wei), "gwei": str(Decimal(wei) / WEI_PER_GWEI)}

    return _run


def _make_block_number_tool(cfg) -> ToolFunc:
    async def _run(args: Dict[str, Any]) -> int:
        return _hex_to_int(await _rpc_call(cfg, "eth_blockNumber", []))

    return _run


def crypto_tools(cfg=None) -> List[Tool]:
    cfg = cfg or settings
    return [
        Tool(
            definition=ToolDef(
                name="get_token_price",
                description="Get the current market price of a crypto asset from CoinGecko.",
                params={
                    "token_id": ToolParam(
                        name="token_id",
                        description="CoinGecko asset id, e.g. bitcoin, ethereum",
                        required=True,
                        schema={"type": "string"},
                    ),
                    "vs_currency": ToolParam(
                        name="vs_currency",
                        description="Quote currency, default usd",
                        required=False,
                        schema={"type": "string"},
                    ),
                },
            ),
            func=_make_token_price_tool(cfg),
        ),
        Tool(
            definition=ToolDef(
                name="get_native_balance",
                description="Get the native coin balance (ETH) of an address on the configured chain.",
                params={
                    "address": ToolParam(
                        name="address",
                        description="0x-prefixed 20-byte hex address",
                        required=True,
                        schema={"type": "string", "pattern": ADDRESS_RE.pattern},
                    ),
                },
            ),
            func=_make_native_balance_tool(cfg),
        ),
        Tool(
            definition=ToolDef(
                name="get_gas_price",
                description="Get the current gas price on the configured chain.",
                params={},
            ),
            func=_make_gas_price_tool(cfg),
        ),
        Tool(
            definition=ToolDef(
                name="get_block_number",
                description="Get the latest block number on the configured chain.",
                params={},
            ),
            func=_make_block_number_tool(cfg),
        ),
    ]
