"""Domain models for CA regeneration runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from .errors import VerificationError


@dataclass(frozen=True)
class CertificateAuthority:
    """CA certificate paired with the private key that signs for it.

    The private key never leaves the process; only the certificate is
    serialized or handed to a trust store.
    """

    certificate: x509.Certificate
    private_key: RSAPrivateKey = field(repr=False)

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject

    @property
    def serial_number(self) -> int:
        return self.certificate.serial_number

    @property
    def not_valid_before(self) -> datetime:
        return self.certificate.not_valid_before_utc

    @property
    def not_valid_after(self) -> datetime:
        return self.certificate.not_valid_after_utc

    @property
    def public_key(self) -> RSAPublicKey:
        return self.private_key.public_key()

    @property
    def key_usage(self) -> x509.KeyUsage | None:
        return _extension_value(self.certificate, x509.KeyUsage)

    @property
    def extended_key_usage(self) -> x509.ExtendedKeyUsage | None:
        return _extension_value(self.certificate, x509.ExtendedKeyUsage)

    @property
    def is_ca(self) -> bool:
        constraints = _extension_value(self.certificate, x509.BasicConstraints)
        return constraints is not None and constraints.ca

    @property
    def basic_constraints_critical(self) -> bool | None:
        """Criticality of basicConstraints, None when the extension is absent."""
        try:
            ext = self.certificate.extensions.get_extension_for_class(x509.BasicConstraints)
        except x509.ExtensionNotFound:
            return None
        return ext.critical


@dataclass(frozen=True)
class RegeneratedAuthority:
    """CA re-signed from an original, sharing its key pair and identity."""

    authority: CertificateAuthority
    original: CertificateAuthority
    basic_constraints_critical: bool | None


@dataclass(frozen=True)
class LeafCertificate:
    """Server certificate with its own freshly generated key."""

    certificate: x509.Certificate
    private_key: RSAPrivateKey = field(repr=False)
    issuer: CertificateAuthority


@dataclass
class VerificationOutcome:
    """Result of one TLS client attempt trusting a single CA."""

    label: str
    accepted: bool
    body: str | None = None
    error: VerificationError | None = None

    @property
    def reason(self) -> str:
        return str(self.error) if self.error is not None else ""


class RunStage(str, Enum):
    """Pipeline stages, in order."""

    IDLE = "idle"
    LOADED = "loaded"
    REGENERATED = "regenerated"
    ISSUED = "issued"
    SERVING = "serving"
    VERIFIED = "verified"
    REPORTED = "reported"


@dataclass
class RunReport:
    """Outcome of a full regeneration and compatibility run."""

    original: VerificationOutcome
    regenerated: VerificationOutcome
    output_path: Path | None
    basic_constraints_critical: bool | None
    stages: list[RunStage] = field(default_factory=list)

    @property
    def stage(self) -> RunStage:
        """Last stage the run reached."""
        return self.stages[-1] if self.stages else RunStage.IDLE

    @property
    def backward_compatible(self) -> bool:
        """True when clients trusting only the original CA accept the new leaf."""
        return self.original.accepted

    def succeeded(self, expect_original_accepted: bool | None = None) -> bool:
        """Check the pair of outcomes against an expectation for the original CA.

        Args:
            expect_original_accepted: Expected original-CA result, or None to
                accept either

        Returns:
            True if the regenerated CA was accepted and the original CA
            matched the expectation
        """
        if not self.regenerated.accepted:
            return False
        if expect_original_accepted is None:
            return True
        return self.original.accepted == expect_original_accepted


def _extension_value(cert: x509.Certificate, ext_type: type) -> x509.ExtensionType | None:
    try:
        return cert.extensions.get_extension_for_class(ext_type).value
    except x509.ExtensionNotFound:
        return None
