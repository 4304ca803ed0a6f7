"""Regeneration run configuration."""

from dataclasses import dataclass
from pathlib import Path

RESPONSE_BODY = "Hello from regenerated CA server!"


@dataclass
class RegenConfig:
    """Settings for one regeneration and compatibility run."""

    server_host: str = "127.0.0.1"
    server_port: int = 8443
    client_host: str = "localhost"
    leaf_common_name: str = "localhost"
    leaf_key_size: int = 2048
    leaf_validity_days: int = 365
    client_timeout: float = 10.0
    server_start_timeout: float = 5.0
    server_handshake_timeout: float = 5.0
    output_path: Path = Path("new-ca.pem")
    response_body: str = RESPONSE_BODY
    basic_constraints_critical: bool = True
    preserve_subject_key_identifier: bool = False
    x509_strict: bool = False
