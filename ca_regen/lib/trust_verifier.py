"""TLS client verification against a trust store holding a single CA."""

import http.client
import ssl
import urllib.error
import urllib.request

from .cert_utils import serialize_certificate
from .errors import HandshakeError, RequestError, VerificationError, VerificationTimeoutError
from .logging_config import LOGGER
from .models import CertificateAuthority, VerificationOutcome


def build_trust_store(authority: CertificateAuthority, x509_strict: bool = False) -> ssl.SSLContext:
    """Create a client TLS context whose only trust anchor is authority.

    Args:
        authority: CA to trust
        x509_strict: Enable OpenSSL strict RFC 5280 checks; when False the flag
            is cleared explicitly so results do not depend on interpreter defaults

    Returns:
        SSLContext with CERT_REQUIRED and hostname checking
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.load_verify_locations(cadata=serialize_certificate(authority.certificate).decode("ascii"))
    if x509_strict:
        context.verify_flags |= ssl.VERIFY_X509_STRICT
    else:
        context.verify_flags &= ~ssl.VERIFY_X509_STRICT
    return context


def classify_failure(exc: BaseException) -> VerificationError:
    """Map a client-side exception to the verification error taxonomy.

    URLError wrappers are unwrapped so the category follows the underlying
    cause; the original exception text is kept in the message.
    """
    cause = exc
    if isinstance(exc, urllib.error.URLError) and not isinstance(exc, urllib.error.HTTPError):
        if isinstance(exc.reason, BaseException):
            cause = exc.reason

    if isinstance(cause, ssl.SSLError):
        return HandshakeError(f"client request failed: {cause}")
    if isinstance(cause, TimeoutError):
        return VerificationTimeoutError(f"client request timed out: {cause}")
    return RequestError(f"client request failed: {exc}")


class TrustVerifier:
    """Performs one HTTPS request per CA against the ephemeral server."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8443,
        timeout: float = 10.0,
        x509_strict: bool = False,
    ) -> None:
        """Initialize verifier.

        Args:
            host: Hostname to connect to; must match the leaf certificate
            port: Server port
            timeout: Per-request deadline in seconds
            x509_strict: Apply OpenSSL strict X.509 checks
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.x509_strict = x509_strict

    @property
    def url(self) -> str:
        return f"https://{self.host}:{self.port}/"

    def verify(self, authority: CertificateAuthority, label: str) -> VerificationOutcome:
        """Connect trusting only authority and report whether the server was accepted.

        Failures are captured in the outcome, never raised.

        Args:
            authority: CA placed in the trust store
            label: Name used in logs and the outcome

        Returns:
            VerificationOutcome with the body on success or the error on failure
        """
        context = build_trust_store(authority, x509_strict=self.x509_strict)
        request = urllib.request.Request(self.url, method="GET")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout, context=context) as response:
                body = response.read().decode("utf-8")
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            error = classify_failure(e)
            error.__cause__ = e
            LOGGER.info("%s: client rejected server: %s", label, error, extra={"label": label})
            return VerificationOutcome(label=label, accepted=False, error=error)

        LOGGER.info("%s: client received response: %s", label, body, extra={"label": label})
        return VerificationOutcome(label=label, accepted=True, body=body)
