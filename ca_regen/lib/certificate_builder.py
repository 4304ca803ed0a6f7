"""Certificate builder for the regenerated CA and its server certificate."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from .cert_utils import generate_serial_number, subject_key_identifier


class CertificateBuilder:
    """Builds X.509 certificates for CA regeneration and leaf issuance."""

    @staticmethod
    def build_regenerated_ca(
        original_cert: x509.Certificate,
        private_key: RSAPrivateKey,
        basic_constraints_critical: bool = True,
        preserve_subject_key_identifier: bool = False,
    ) -> x509.Certificate:
        """Re-sign a CA certificate with its own key, changing only extension handling.

        Subject, issuer, serial number, validity window, key usage, extended
        key usage and public key are copied from the original. The
        basicConstraints extension is always emitted with CA:TRUE; its
        criticality is controlled by basic_constraints_critical.

        Args:
            original_cert: CA certificate to regenerate
            private_key: Original CA private key, used for the public key and signature
            basic_constraints_critical: Mark basicConstraints critical
            preserve_subject_key_identifier: Copy the original SKI bytes instead of
                deriving them from the public key

        Returns:
            Self-signed X.509 CA certificate
        """
        path_length = None
        try:
            original_bc = original_cert.extensions.get_extension_for_class(x509.BasicConstraints)
            path_length = original_bc.value.path_length
        except x509.ExtensionNotFound:
            pass

        public_key = private_key.public_key()
        original_ski = subject_key_identifier(original_cert)
        if preserve_subject_key_identifier and original_ski is not None:
            ski = original_ski
        else:
            ski = x509.SubjectKeyIdentifier.from_public_key(public_key)

        builder = (
            x509.CertificateBuilder()
            .subject_name(original_cert.subject)
            .issuer_name(original_cert.issuer)
            .public_key(public_key)
            .serial_number(original_cert.serial_number)
            .not_valid_before(original_cert.not_valid_before_utc)
            .not_valid_after(original_cert.not_valid_after_utc)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=path_length),
                critical=basic_constraints_critical,
            )
            .add_extension(ski, critical=False)
        )

        try:
            key_usage = original_cert.extensions.get_extension_for_class(x509.KeyUsage).value
            builder = builder.add_extension(key_usage, critical=True)
        except x509.ExtensionNotFound:
            pass

        try:
            ext_key_usage = original_cert.extensions.get_extension_for_class(
                x509.ExtendedKeyUsage
            ).value
            builder = builder.add_extension(ext_key_usage, critical=False)
        except x509.ExtensionNotFound:
            pass

        algorithm = original_cert.signature_hash_algorithm or hashes.SHA256()
        return builder.sign(private_key, algorithm)

    @staticmethod
    def build_server_certificate(
        public_key: RSAPublicKey,
        issuer_cert: x509.Certificate,
        issuer_key: RSAPrivateKey,
        common_name: str,
        validity_days: int,
    ) -> x509.Certificate:
        """Build a TLS server certificate for a single DNS name.

        Args:
            public_key: Server public key
            issuer_cert: Issuing CA certificate
            issuer_key: Issuing CA private key for signing
            common_name: Hostname, used as CN and the only DNS SAN entry
            validity_days: Certificate validity period in days

        Returns:
            X.509 end-entity certificate with serverAuth EKU
        """
        issuer_ski = subject_key_identifier(issuer_cert)
        if issuer_ski is not None:
            aki = x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(issuer_ski)
        else:
            aki = x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key())

        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_days)

        builder = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
            .issuer_name(issuer_cert.subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
                critical=False,
            )
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(common_name)]),
                critical=False,
            )
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
            .add_extension(aki, critical=False)
        )

        return builder.sign(issuer_key, hashes.SHA256())
