"""Test fixtures for ca_regen tests."""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import NameOID

from ca_regen.lib.ca_manager import CAManager
from ca_regen.lib.cert_utils import (
    generate_private_key,
    serialize_certificate,
    serialize_private_key,
)
from ca_regen.lib.config import RegenConfig
from ca_regen.lib.models import CertificateAuthority, LeafCertificate, RegeneratedAuthority
from ca_regen.lib.tls_server import EphemeralTLSServer

ROOT_SUBJECT = x509.Name(
    [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "GB"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Test Root CA"),
    ]
)

CA_KEY_USAGE = x509.KeyUsage(
    digital_signature=True,
    content_commitment=False,
    key_encipherment=False,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=True,
    crl_sign=True,
    encipher_only=False,
    decipher_only=False,
)

OriginalCAFactory = Callable[..., x509.Certificate]


@pytest.fixture(scope="session")
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for the original CA (shared, key generation is slow)."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def make_original_ca(root_key: RSAPrivateKey) -> OriginalCAFactory:
    """Return a factory for self-signed original CA certificates.

    Keyword args:
        basic_constraints_critical: Criticality of basicConstraints (default False)
        ski: SubjectKeyIdentifier to embed; derived from the key when None
        path_length: pathLenConstraint
        ext_key_usage: Optional list of EKU OIDs
        key: CA key pair (defaults to root_key)
    """

    def _make(
        basic_constraints_critical: bool = False,
        ski: x509.SubjectKeyIdentifier | None = None,
        path_length: int | None = None,
        ext_key_usage: list[x509.ObjectIdentifier] | None = None,
        key: RSAPrivateKey | None = None,
    ) -> x509.Certificate:
        key = key or root_key
        now = datetime.now(UTC)
        builder = (
            x509.CertificateBuilder()
            .subject_name(ROOT_SUBJECT)
            .issuer_name(ROOT_SUBJECT)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=730))
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=path_length),
                critical=basic_constraints_critical,
            )
            .add_extension(CA_KEY_USAGE, critical=True)
            .add_extension(
                ski or x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
                critical=False,
            )
        )
        if ext_key_usage is not None:
            builder = builder.add_extension(x509.ExtendedKeyUsage(ext_key_usage), critical=False)
        return builder.sign(key, hashes.SHA256())

    return _make


@pytest.fixture
def root_cert(make_original_ca: OriginalCAFactory) -> x509.Certificate:
    """Original CA with non-critical basic constraints and a key-derived SKI."""
    return make_original_ca()


@pytest.fixture
def original_ca(root_cert: x509.Certificate, root_key: RSAPrivateKey) -> CertificateAuthority:
    """Return the original CA as a loaded CertificateAuthority."""
    return CertificateAuthority(certificate=root_cert, private_key=root_key)


@pytest.fixture
def regen_config(tmp_path: Path) -> RegenConfig:
    """Return test configuration on an ephemeral port with short timeouts."""
    return RegenConfig(
        server_port=0,
        client_timeout=5.0,
        output_path=tmp_path / "new-ca.pem",
    )


@pytest.fixture
def ca_manager(regen_config: RegenConfig) -> CAManager:
    """Return CAManager using test configuration."""
    return CAManager(regen_config)


@pytest.fixture
def regenerated(ca_manager: CAManager, original_ca: CertificateAuthority) -> RegeneratedAuthority:
    """Regenerate the original CA with critical basic constraints."""
    return ca_manager.regenerate_ca(original_ca)


@pytest.fixture
def leaf(ca_manager: CAManager, regenerated: RegeneratedAuthority) -> LeafCertificate:
    """Issue a localhost server certificate from the regenerated CA."""
    return ca_manager.issue_server_certificate(regenerated.authority)


@pytest.fixture
def tls_server(leaf: LeafCertificate) -> Generator[EphemeralTLSServer, None, None]:
    """Run an ephemeral HTTPS server presenting the leaf certificate."""
    server = EphemeralTLSServer(leaf, port=0)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def ca_files_on_disk(
    tmp_path: Path,
    root_key: RSAPrivateKey,
    root_cert: x509.Certificate,
) -> tuple[Path, Path]:
    """Write the original CA certificate and PKCS#8 key to disk.

    Returns:
        Tuple of (cert_path, key_path)
    """
    cert_path = tmp_path / "ca.pem"
    key_path = tmp_path / "ca.key"
    cert_path.write_bytes(serialize_certificate(root_cert))
    key_path.write_bytes(serialize_private_key(root_key))
    return cert_path, key_path


@pytest.fixture
def pkcs1_key_pem(root_key: RSAPrivateKey) -> bytes:
    """Return the original CA key as a PKCS#1 (RSA PRIVATE KEY) PEM."""
    return serialize_private_key(root_key, serialization.PrivateFormat.TraditionalOpenSSL)


@pytest.fixture
def foreign_ski() -> x509.SubjectKeyIdentifier:
    """SKI not derived from the CA key, as produced by tools using other SKI methods."""
    return x509.SubjectKeyIdentifier(bytes(range(1, 21)))
