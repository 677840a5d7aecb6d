from __future__ import annotations


class ProvisioningFailure(RuntimeError):
    """The provisioner returned nothing usable (empty, malformed or unreachable)."""


class JudgeBackendFailure(RuntimeError):
    """Transport or parse failure inside a judge backend; never leaves the judge."""


class HintFailure(RuntimeError):
    pass


class SessionStateError(RuntimeError):
    """A command was issued that the session cannot accept in its current state."""
