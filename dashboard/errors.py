from __future__ import annotations


class DashboardError(Exception):
    """Base class for errors raised by the dashboard core."""


class NetworkFailure(DashboardError):
    """Transport or HTTP-level failure talking to the customer API."""


class InvalidPayload(NetworkFailure):
    """The API answered, but the body does not match the expected shape."""
