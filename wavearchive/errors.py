"""Exceptions and warnings raised while reading, writing and pairing archives."""


class ArchiveError(Exception):
    """Base class of all waveform archive errors."""


class FormatError(ArchiveError):
    """The archive (or a record bound for it) violates the binary layout.

    Always fatal: the mapping between the ID file and the data file cannot
    be trusted once this is raised.
    """


class IdentityConflictError(ArchiveError):
    """Two records of the same kind share every identifying field."""


class RecordKindError(ArchiveError, ValueError):
    """A record cannot be written by the writer it was handed to."""


class PairingWarning(UserWarning):
    """Some synthetic or observed records were left without a partner."""
