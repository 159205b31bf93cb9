from __future__ import annotations


class MembershipManagerError(Exception):
    """Base class for fatal errors; the supervisor turns these into exit status 1."""


class ConfigError(MembershipManagerError):
    pass


class MissingMetadata(MembershipManagerError):
    """The sidecar's own container, or its Compose project label, could not be found."""


class SubscriptionError(MembershipManagerError):
    """The Docker event stream could not be opened or stopped delivering events."""


class ConnectCancelled(MembershipManagerError):
    """Shutdown was requested while still waiting for the coordinator."""
