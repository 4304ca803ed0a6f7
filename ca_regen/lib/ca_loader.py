"""Load an existing CA certificate and RSA private key from PEM."""

import base64
import binascii
import re
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .cert_utils import is_self_signed, public_key_bytes
from .errors import DecodeError, KeyMismatchError, KeyTypeError, ParseError
from .logging_config import LOGGER
from .models import CertificateAuthority

SUPPORTED_PRIVATE_KEY_TYPES: tuple[type, ...] = (RSAPrivateKey,)

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----(.*?)-----END \1-----",
    re.DOTALL,
)


def decode_pem_block(data: bytes, what: str) -> tuple[str, bytes]:
    """Return (label, DER) for the first PEM block in data.

    Raises:
        DecodeError: If no PEM block is found or its body is not base64
    """
    match = _PEM_BLOCK.search(data)
    if match is None:
        raise DecodeError(f"failed to decode {what} PEM: no PEM block found")
    try:
        der = base64.b64decode(b"".join(match.group(2).split()), validate=True)
    except binascii.Error as e:
        raise DecodeError(f"failed to decode {what} PEM: {e}") from e
    return match.group(1).decode("ascii"), der


def load_private_key(key_pem: bytes) -> RSAPrivateKey:
    """Decode an RSA private key in a PKCS#1 or PKCS#8 container.

    The PEM label is ignored; the DER payload alone decides the container.

    Args:
        key_pem: PEM encoded private key

    Returns:
        RSA private key

    Raises:
        DecodeError: If the PEM armor is malformed
        ParseError: If neither PKCS#1 nor PKCS#8 decoding succeeds
        KeyTypeError: If the decoded key is not RSA
    """
    _, der = decode_pem_block(key_pem, "CA private key")

    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ParseError(f"failed to parse CA private key (tried PKCS#1 and PKCS#8): {e}") from e

    if not isinstance(key, SUPPORTED_PRIVATE_KEY_TYPES):
        raise KeyTypeError(f"CA private key is not an RSA key (got {type(key).__name__})")
    return key


def load_certificate(cert_pem: bytes) -> x509.Certificate:
    """Decode and parse a PEM X.509 certificate.

    Raises:
        DecodeError: If the PEM armor is malformed
        ParseError: If the DER payload is not a certificate
    """
    _, der = decode_pem_block(cert_pem, "CA certificate")
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise ParseError(f"failed to parse CA certificate: {e}") from e


def load_certificate_authority(cert_pem: bytes, key_pem: bytes) -> CertificateAuthority:
    """Load a CA certificate and its private key.

    Args:
        cert_pem: PEM encoded CA certificate
        key_pem: PEM encoded CA private key (PKCS#1 or PKCS#8, RSA)

    Returns:
        CertificateAuthority pairing the certificate with its key

    Raises:
        LoadError: DecodeError, ParseError, KeyTypeError or KeyMismatchError
    """
    cert = load_certificate(cert_pem)
    key = load_private_key(key_pem)

    if public_key_bytes(cert.public_key()) != public_key_bytes(key.public_key()):
        raise KeyMismatchError("CA private key does not match CA certificate public key")

    authority = CertificateAuthority(certificate=cert, private_key=key)
    if not authority.is_ca:
        LOGGER.warning("CA certificate %s is not marked as a CA", cert.subject.rfc4514_string())
    if not is_self_signed(cert):
        LOGGER.warning("CA certificate %s is not self-signed", cert.subject.rfc4514_string())
    return authority


def load_certificate_authority_files(cert_path: Path, key_path: Path) -> CertificateAuthority:
    """Read PEM files from disk and load the CA.

    Raises:
        FileNotFoundError: If either file is missing
        LoadError: If the contents cannot be loaded
    """
    return load_certificate_authority(cert_path.read_bytes(), key_path.read_bytes())
