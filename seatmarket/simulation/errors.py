"""Exceptions raised by the simulation core."""


class PhaseError(RuntimeError):
    """An operation was requested in a phase that does not allow it."""


class UnknownSessionError(KeyError):
    """No session is registered under the given id."""


class UnknownTeamError(KeyError):
    """The session has no team with the given id."""
