# services/errors.py
from __future__ import annotations


class EngineError(Exception):
    """Base for errors raised by the reconciliation and billing services."""


class ConfigurationMissing(EngineError):
    """Required configuration (e.g. the tariff of a country) does not exist."""


class ReferenceNotFound(EngineError):
    """A referenced company, metered usage, subscription or payment does not exist."""


class SubscriptionConflict(EngineError):
    """The company already subscribes to the service during the requested window."""


class AlreadyCancelled(EngineError):
    pass


class UsageDateConflict(EngineError):
    """The company already has metered usage recorded for that date."""
