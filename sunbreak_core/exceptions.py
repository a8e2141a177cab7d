"""Exceptions raised by the Sunbreak engine."""
from __future__ import annotations


class SunbreakException(Exception):
    """Base exception for the Sunbreak engine."""


class ConfigurationMissing(SunbreakException):
    """No schedule has been saved yet."""


class PersistenceUnavailable(SunbreakException):
    """The durable store is unreadable or holds corrupt data."""


class InvalidSchedule(SunbreakException):
    """A schedule value could not be parsed or validated."""


class AuthorizationUnavailable(SunbreakException):
    """The Restrictor cannot be invoked right now."""


class RestrictorError(SunbreakException):
    """The Restrictor failed to apply or clear restriction."""


class StateDivergence(SunbreakException):
    """Two execution contexts derived different states from the same inputs."""
