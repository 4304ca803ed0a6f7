"""CA manager for regeneration and leaf issuance."""

from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .cert_utils import (
    find_basic_constraints,
    generate_private_key,
    get_certificate_serial_hex,
    serialize_certificate,
)
from .certificate_builder import CertificateBuilder
from .config import RegenConfig
from .errors import EncodingError, KeyGenError, SigningError
from .logging_config import LOGGER
from .models import CertificateAuthority, LeafCertificate, RegeneratedAuthority


def _reparse(cert: x509.Certificate, what: str) -> x509.Certificate:
    """Round-trip a freshly signed certificate through DER."""
    try:
        return x509.load_der_x509_certificate(cert.public_bytes(serialization.Encoding.DER))
    except ValueError as e:
        raise EncodingError(f"failed to parse {what}: {e}") from e


class CAManager:
    """Regenerates a CA from an existing key and issues a server certificate from it."""

    def __init__(self, config: RegenConfig) -> None:
        """Initialize CA manager with configuration.

        Args:
            config: Run configuration (criticality, leaf parameters, output path)
        """
        self.config = config

    def regenerate_ca(self, original: CertificateAuthority) -> RegeneratedAuthority:
        """Build a new self-signed CA from the original certificate and key.

        Args:
            original: Loaded CA certificate and private key

        Returns:
            RegeneratedAuthority sharing the original key pair, with the observed
            basicConstraints criticality recorded

        Raises:
            SigningError: If certificate construction or signing fails
            EncodingError: If the signed certificate cannot be parsed back
        """
        try:
            signed = CertificateBuilder.build_regenerated_ca(
                original_cert=original.certificate,
                private_key=original.private_key,
                basic_constraints_critical=self.config.basic_constraints_critical,
                preserve_subject_key_identifier=self.config.preserve_subject_key_identifier,
            )
        except (ValueError, TypeError) as e:
            raise SigningError(f"failed to create new CA certificate: {e}") from e

        new_cert = _reparse(signed, "new CA certificate")

        critical = None
        constraints = find_basic_constraints(new_cert)
        if constraints is None:
            LOGGER.warning("Basic constraints extension missing from the new CA")
        elif constraints.critical:
            critical = True
            LOGGER.info("Verified: basic constraints are critical in the new CA")
        else:
            critical = False
            LOGGER.warning("Basic constraints are not critical in the new CA")

        LOGGER.info("Regenerated CA with serial %s", get_certificate_serial_hex(new_cert))
        return RegeneratedAuthority(
            authority=CertificateAuthority(certificate=new_cert, private_key=original.private_key),
            original=original,
            basic_constraints_critical=critical,
        )

    def issue_server_certificate(self, issuer: CertificateAuthority) -> LeafCertificate:
        """Issue a server certificate for the configured hostname.

        Args:
            issuer: CA that signs the certificate

        Returns:
            LeafCertificate with a freshly generated key

        Raises:
            KeyGenError: If the server key cannot be generated
            SigningError: If certificate construction or signing fails
            EncodingError: If the signed certificate cannot be parsed back
        """
        try:
            server_key = generate_private_key(self.config.leaf_key_size)
        except (ValueError, TypeError) as e:
            raise KeyGenError(f"failed to generate server key: {e}") from e

        try:
            signed = CertificateBuilder.build_server_certificate(
                public_key=server_key.public_key(),
                issuer_cert=issuer.certificate,
                issuer_key=issuer.private_key,
                common_name=self.config.leaf_common_name,
                validity_days=self.config.leaf_validity_days,
            )
        except (ValueError, TypeError) as e:
            raise SigningError(f"failed to create server certificate: {e}") from e

        cert = _reparse(signed, "server certificate")
        LOGGER.info(
            "Issued server certificate for %s (serial %s)",
            self.config.leaf_common_name,
            get_certificate_serial_hex(cert),
        )
        return LeafCertificate(certificate=cert, private_key=server_key, issuer=issuer)

    def save_ca_certificate(self, authority: CertificateAuthority, path: Path) -> Path | None:
        """Write the CA certificate as a PEM CERTIFICATE block.

        Failure is reported and swallowed; the file is for inspection only.

        Returns:
            Path written, or None if the write failed
        """
        try:
            path.write_bytes(serialize_certificate(authority.certificate))
        except OSError as e:
            LOGGER.warning("Failed to save new CA to %s: %s", path, e)
            return None
        LOGGER.info("Saved new CA to %s for inspection", path)
        return path
