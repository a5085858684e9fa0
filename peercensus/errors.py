"""Exception types raised across peercensus."""
from __future__ import annotations


class PeerCensusError(Exception):
    """Base class for peercensus errors."""


class GeoLookupError(PeerCensusError, LookupError):
    """The geo database could not be opened or queried."""


class PublishError(PeerCensusError):
    """Committing or pushing the archived log failed."""


class CredentialInputError(PeerCensusError):
    """The access token could not be read at startup."""


class FatalStorageError(PeerCensusError):
    """The log file could not be deleted; the data directory is unusable.

    Not an OSError on purpose: handlers that recover from ordinary I/O
    failures must let this one through.
    """
