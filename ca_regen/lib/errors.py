"""Exception hierarchy for CA regeneration and trust verification."""


class CARegenError(Exception):
    """Base class for all ca_regen errors.

    The pipeline sets ``stage`` to the last run stage reached before the failure.
    """

    stage: str | None = None


class LoadError(CARegenError):
    """Loading the original CA certificate or key failed."""


class DecodeError(LoadError):
    """Input is not valid PEM."""


class ParseError(LoadError):
    """PEM decoded but the DER payload is not a valid certificate or key."""


class KeyTypeError(LoadError):
    """Private key algorithm is not supported (RSA only)."""


class KeyMismatchError(LoadError):
    """Private key does not belong to the certificate's public key."""


class IssuanceError(CARegenError):
    """Building or signing a certificate failed."""


class KeyGenError(IssuanceError):
    """Key pair generation failed."""


class SigningError(IssuanceError):
    """Certificate construction or signing failed."""


class EncodingError(IssuanceError):
    """Signed certificate bytes could not be parsed back."""


class VerificationError(CARegenError):
    """TLS client verification against the ephemeral server failed.

    Never fatal: captured in a VerificationOutcome instead of raised.
    """


class HandshakeError(VerificationError):
    """TLS handshake failed, typically certificate verification."""


class RequestError(VerificationError):
    """Connection or HTTP request failed outside the TLS handshake."""


class VerificationTimeoutError(VerificationError, TimeoutError):
    """Client call exceeded its deadline."""
