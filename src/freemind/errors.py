"""Exception types raised by the Freemind client."""


class FreemindError(Exception):
    """Base class for all Freemind client errors."""


class TransportError(FreemindError):
    """The remote server could not be reached or the exchange failed."""


class DocumentDecodeError(FreemindError):
    """A registry document could not be parsed."""


class IdSpaceExhaustedError(FreemindError):
    """Every 16-bit record id is already taken."""


class ConfigError(FreemindError):
    """The configuration file exists but cannot be used."""
