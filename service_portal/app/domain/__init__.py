"""
Request admission for the portal.
"""

from .gateway import (
    AccessGateway,
    ClientDisconnected,
    GatewayDecision,
    GatewayRejected,
    Outcome,
    RouteKind,
    RoutePolicy,
    rejection_response,
)

__all__ = [
    "AccessGateway",
    "ClientDisconnected",
    "GatewayDecision",
    "GatewayRejected",
    "Outcome",
    "RouteKind",
    "RoutePolicy",
    "rejection_response",
]
