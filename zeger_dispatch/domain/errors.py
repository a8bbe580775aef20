"""
Error taxonomy shared by the locator, the negotiator and the stores.

Only ``StoreUnavailable`` and ``InvalidSelection`` ever reach a caller.
``EnrichmentDegraded`` and ``ChannelUnavailable`` are raised by the
infrastructure layer and absorbed by the domain services.
"""


class DispatchError(Exception):
    """Base class for rider-dispatch failures."""


class StoreUnavailable(DispatchError):
    """The primary rider fetch or the dispatch-record write failed."""


class EnrichmentDegraded(DispatchError):
    """A secondary lookup (stock, branch, location log) failed."""


class ChannelUnavailable(DispatchError):
    """The status-change subscription could not be established or was lost."""


class InvalidSelection(DispatchError):
    """A negotiation was requested for a rider that cannot be dispatched."""


class RiderBusy(InvalidSelection):
    """The rider is already the target of another pending negotiation."""
