"""
Clients for the services around a payment.

Provides the merchant order backend client used to fetch orders and to
report payment results.
"""

from .backend import OrderBackendClient

__all__ = ["OrderBackendClient"]
