class HallError(Exception):
    """Base class for hall service failures."""


class AlreadyExists(HallError):
    pass


class NotFound(HallError):
    pass


class InvalidArgument(HallError, ValueError):
    pass


class UpstreamUnavailable(HallError):
    """An RPC, store or cache call did not return a usable result."""


class DecodeError(HallError):
    """A reply or cache payload could not be decoded."""
