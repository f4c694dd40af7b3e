"""
Token and Settlement Contract ABI Module

Minimal ABI entries for the calls the payment flow makes:

    - ERC-20 ``decimals()``, ``allowance(owner, spender)``, ``approve(spender, amount)``
    - Settlement contract ``payTx`` in its two deployed shapes

Usage:
    from chainpay.adapters.evm.abis import get_allowance_abi, get_pay_tx_abi

    entry = get_allowance_abi()
    contract = web3.eth.contract(address=token_address, abi=[entry])
"""

from typing import Any, Dict


def get_decimals_abi() -> Dict[str, Any]:
    """
    Get ABI entry for ERC-20 ``decimals()``.

    Returns:
        Dict[str, Any]: ABI for the ``decimals`` view (returns ``uint8``).
    """
    return {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    }


def get_allowance_abi() -> Dict[str, Any]:
    """
    Get ABI entry for ERC-20 ``allowance(owner, spender)``.

    Returns:
        Dict[str, Any]: ABI for the ``allowance`` view (returns ``uint256``).
    """
    return {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    }


def get_approve_abi() -> Dict[str, Any]:
    """
    Get ABI entry for ERC-20 ``approve(spender, amount)``.

    Returns:
        Dict[str, Any]: ABI for the ``approve`` function (returns ``bool``).
    """
    return {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    }


def get_pay_tx_abi(with_authorization: bool = True) -> Dict[str, Any]:
    """
    Get ABI entry for the settlement contract's ``payTx``.

    Two shapes are deployed:

    * signed:  ``payTx(bytes32,bytes32,bytes32,address,uint256,uint256,bytes)``
    * basic:   ``payTx(bytes32,bytes32,bytes32,address,uint256)``

    Args:
        with_authorization: Include the trailing ``deadline`` and ``signature`` inputs.

    Returns:
        Dict[str, Any]: ABI for ``payTx``.
    """
    inputs = [
        {"name": "merchantId", "type": "bytes32"},
        {"name": "orderId", "type": "bytes32"},
        {"name": "invoiceId", "type": "bytes32"},
        {"name": "token", "type": "address"},
        {"name": "amount", "type": "uint256"},
    ]
    if with_authorization:
        inputs += [
            {"name": "deadline", "type": "uint256"},
            {"name": "signature", "type": "bytes"},
        ]
    return {
        "name": "payTx",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": inputs,
        "outputs": [],
    }
