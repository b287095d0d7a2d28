"""
Flutterwave Integration Module
==============================

Central export point for the Flutterwave (M-Pesa) payment integration.

Usage::

    from tipkesho.integrations.flutterwave import (
        FlutterwaveGateway,
        GatewayOutcome,
        OutcomeKind,
        build_payment_payload,
    )
"""

from .paymentService import (
    PROVIDER_NOT_CONFIGURED,
    FlutterwaveGateway,
    GatewayOutcome,
    OutcomeKind,
    build_payment_payload,
    get_provider_credential,
)

__all__ = [
    "PROVIDER_NOT_CONFIGURED",
    "FlutterwaveGateway",
    "GatewayOutcome",
    "OutcomeKind",
    "build_payment_payload",
    "get_provider_credential",
]
