class PodLeaderError(Exception):
    """Base exception for all podleader errors."""


class RecordNotFoundError(PodLeaderError):
    """The lock record does not exist in the store."""


class RecordExistsError(PodLeaderError):
    """A lock record with the same name already exists in the namespace."""


class NamespaceNotFoundError(PodLeaderError):
    """No namespace could be found for the current environment."""


class FatalElectionError(PodLeaderError):
    """The store could not be read or written; leadership cannot be decided."""


class MalformedOwnerError(FatalElectionError):
    """An owner reference is missing the uid needed to compare identities."""


class RetriesExhaustedError(FatalElectionError):
    """The retry strategy gave up before leadership was acquired."""


class ElectionAbortedError(PodLeaderError):
    """The abort event was set before leadership was acquired."""
