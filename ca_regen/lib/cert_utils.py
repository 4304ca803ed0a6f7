"""Certificate utility functions for keys, serialization and chain checks."""

import secrets

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.x509.oid import ExtensionOID


def generate_private_key(key_size: int = 2048) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(
    key: RSAPrivateKey,
    private_format: serialization.PrivateFormat = serialization.PrivateFormat.PKCS8,
) -> bytes:
    """Serialize private key to unencrypted PEM (PKCS8 unless told otherwise)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=private_format,
        encryption_algorithm=serialization.NoEncryption(),
    )


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def generate_serial_number() -> int:
    """Generate a random positive serial number of up to 128 bits."""
    # RFC 5280 serials must be positive
    return secrets.randbits(128) or 1


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def public_key_bytes(public_key: RSAPublicKey) -> bytes:
    """Return DER SubjectPublicKeyInfo bytes for bit-exact key comparison."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_keys_match(first: RSAPublicKey, second: RSAPublicKey) -> bool:
    """Compare two public keys bit for bit."""
    return public_key_bytes(first) == public_key_bytes(second)


def is_self_signed(cert: x509.Certificate) -> bool:
    """Return True if issuer == subject and the signature verifies with the cert's own key."""
    if cert.issuer != cert.subject:
        return False
    try:
        cert.verify_directly_issued_by(cert)
        return True
    except (ValueError, TypeError, InvalidSignature):
        return False


def is_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Verify a single chain link (cert signed by issuer)."""
    try:
        cert.verify_directly_issued_by(issuer)
        return True
    except (ValueError, TypeError, InvalidSignature):
        return False


def find_basic_constraints(cert: x509.Certificate) -> x509.Extension | None:
    """Scan the emitted extension list for basicConstraints (OID 2.5.29.19)."""
    for ext in cert.extensions:
        if ext.oid == ExtensionOID.BASIC_CONSTRAINTS:
            return ext
    return None


def subject_key_identifier(cert: x509.Certificate) -> x509.SubjectKeyIdentifier | None:
    """Return the SKI extension value, if present."""
    try:
        return cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
    except x509.ExtensionNotFound:
        return None
