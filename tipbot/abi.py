# tipbot/abi.py
# SPXP ledger contract. Accounts are Telegram user ids (uint256), not addresses.
from __future__ import annotations

_USER_INFO = [
    {"name": "id", "type": "uint256"},
    {"name": "username", "type": "string"},
    {"name": "balance", "type": "uint256"},
]

SPXP_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "id", "type": "uint256"}],
        "outputs": [{"name": "balance", "type": "uint256"}],
    },
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "from", "type": "uint256"},
            {"name": "to", "type": "uint256"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "name": "user",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "id", "type": "uint256"}],
        "outputs": [{"name": "userInfo", "type": "tuple", "components": _USER_INFO}],
    },
    {
        "name": "userLength",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "length", "type": "uint256"}],
    },
    {
        "name": "users",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "fromIndex", "type": "uint256"},
            {"name": "toIndex", "type": "uint256"},
        ],
        "outputs": [{"name": "_someUsers", "type": "tuple[]", "components": _USER_INFO}],
    },
]
