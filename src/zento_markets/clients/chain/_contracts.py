"""Minimal ABIs for the prediction market and stake token contracts.

Only the functions the client calls are declared. Struct outputs are
decoded positionally, so the ``*_FIELDS`` tuples below must follow the
component order of the corresponding ABI tuple.
"""

from typing import Any

from web3 import Web3

TOKEN_ABI: list[dict[str, Any]] = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

MARKET_DETAIL_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "description",
    "resolutionCriteria",
    "creator",
    "creationTime",
    "endTime",
    "oracle",
    "resolved",
    "outcome",
    "yesPrice",
    "noPrice",
    "totalYesShares",
    "totalNoShares",
    "totalLiquidity",
    "totalValueLocked",
    "participantCount",
)

POSITION_FIELDS: tuple[str, ...] = ("id", "user", "outcome", "shares", "avgPrice", "timestamp")

_MARKET_DETAIL_TYPES: dict[str, str] = {
    "id": "uint64",
    "title": "string",
    "description": "string",
    "resolutionCriteria": "string",
    "creator": "address",
    "creationTime": "uint64",
    "endTime": "uint64",
    "oracle": "address",
    "resolved": "bool",
    "outcome": "uint8",
    "yesPrice": "uint256",
    "noPrice": "uint256",
    "totalYesShares": "uint256",
    "totalNoShares": "uint256",
    "totalLiquidity": "uint256",
    "totalValueLocked": "uint256",
    "participantCount": "uint256",
}

_POSITION_TYPES: dict[str, str] = {
    "id": "uint256",
    "user": "address",
    "outcome": "uint8",
    "shares": "uint256",
    "avgPrice": "uint256",
    "timestamp": "uint64",
}


def _uint_view(name: str, inputs: list[dict[str, str]] | None = None) -> dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs or [],
        "outputs": [{"name": "", "type": "uint256"}],
    }


def _write(name: str, inputs: list[dict[str, str]]) -> dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": inputs,
        "outputs": [],
    }


MARKET_ABI: list[dict[str, Any]] = [
    _uint_view(
        "calculateOutcomePrice",
        [{"name": "marketId", "type": "uint64"}, {"name": "outcome", "type": "uint8"}],
    ),
    _uint_view("marketCreationFee"),
    _uint_view("minInitialLiquidity"),
    {
        "name": "getAllMarketIds",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint64[]"}],
    },
    {
        "name": "getMarketDetails",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "marketId", "type": "uint64"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": name, "type": _MARKET_DETAIL_TYPES[name]}
                    for name in MARKET_DETAIL_FIELDS
                ],
            },
        ],
    },
    {
        "name": "getUserPositions",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "marketId", "type": "uint64"},
            {"name": "user", "type": "address"},
        ],
        "outputs": [
            {
                "name": "",
                "type": "tuple[]",
                "components": [
                    {"name": name, "type": _POSITION_TYPES[name]} for name in POSITION_FIELDS
                ],
            },
        ],
    },
    _write(
        "buyPosition",
        [
            {"name": "marketId", "type": "uint64"},
            {"name": "outcome", "type": "uint8"},
            {"name": "amount", "type": "uint256"},
            {"name": "maxPrice", "type": "uint256"},
        ],
    ),
    _write(
        "sellPosition",
        [
            {"name": "marketId", "type": "uint256"},
            {"name": "positionId", "type": "uint256"},
            {"name": "shares", "type": "uint256"},
            {"name": "minPrice", "type": "uint256"},
        ],
    ),
    _write(
        "claimWinnings",
        [
            {"name": "marketId", "type": "uint256"},
            {"name": "positionId", "type": "uint256"},
        ],
    ),
    _write(
        "createMarket",
        [
            {"name": "title", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "resolutionCriteria", "type": "string"},
            {"name": "endTime", "type": "uint64"},
            {"name": "oracle", "type": "address"},
            {"name": "initialLiquidity", "type": "uint256"},
        ],
    ),
]

# Custom errors the market contract may revert with, keyed by 4-byte selector
KNOWN_ERRORS: dict[str, str] = {
    Web3.keccak(text=f"{name}()").hex().removeprefix("0x")[:8]: name
    for name in ("InvalidEndTime", "InsufficientLiquidity", "InsufficientBalance", "SlippageExceeded")
}
