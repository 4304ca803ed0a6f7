#!/usr/bin/env python3
"""Regenerate a CA with critical basic constraints and check client compatibility."""

import argparse
import sys
from pathlib import Path

from ca_regen.lib.ca_loader import load_certificate_authority_files
from ca_regen.lib.ca_manager import CAManager
from ca_regen.lib.config import RegenConfig
from ca_regen.lib.errors import CARegenError
from ca_regen.lib.logging_config import LOGGER, set_log_level
from ca_regen.lib.models import RunReport, RunStage
from ca_regen.lib.tls_server import EphemeralTLSServer
from ca_regen.lib.trust_verifier import TrustVerifier

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNEXPECTED = 2

EXPECTATIONS = {"accepted": True, "rejected": False}


def run_compatibility_check(
    ca_cert_path: Path,
    ca_key_path: Path,
    config: RegenConfig,
) -> RunReport:
    """Run the full pipeline: load, regenerate, save, issue, serve, verify twice.

    1. Load original CA certificate and key from disk
    2. Regenerate CA with the original key (basicConstraints criticality from config)
    3. Save the new CA to config.output_path (non-fatal on failure)
    4. Issue a localhost server certificate from the new CA
    5. Serve it over HTTPS
    6. Verify with a client trusting only the original CA, then only the new CA

    Every stage entered is recorded on the report. A CARegenError raised
    along the way carries the last stage reached in its ``stage`` attribute.

    Args:
        ca_cert_path: Original CA certificate PEM file
        ca_key_path: Original CA private key PEM file
        config: Run configuration

    Returns:
        RunReport with both verification outcomes

    Raises:
        FileNotFoundError: If either input file is missing
        LoadError: If the original CA cannot be loaded
        IssuanceError: If regeneration or server certificate issuance fails
        OSError: If the server cannot bind its port
    """
    stages: list[RunStage] = []

    def advance(stage: RunStage) -> None:
        stages.append(stage)
        LOGGER.debug("Entered stage %s", stage.value, extra={"stage": stage.value})

    advance(RunStage.IDLE)
    ca_manager = CAManager(config)

    try:
        original = load_certificate_authority_files(ca_cert_path, ca_key_path)
        advance(RunStage.LOADED)
        LOGGER.info("Loaded original CA certificate and key")

        regenerated = ca_manager.regenerate_ca(original)
        advance(RunStage.REGENERATED)

        output_path = ca_manager.save_ca_certificate(regenerated.authority, config.output_path)

        leaf = ca_manager.issue_server_certificate(regenerated.authority)
        advance(RunStage.ISSUED)
    except CARegenError as e:
        e.stage = stages[-1].value
        raise

    server = EphemeralTLSServer(
        leaf,
        host=config.server_host,
        port=config.server_port,
        body=config.response_body,
        handshake_timeout=config.server_handshake_timeout,
    )
    server.start(timeout=config.server_start_timeout)
    try:
        advance(RunStage.SERVING)
        verifier = TrustVerifier(
            host=config.client_host,
            port=server.port,
            timeout=config.client_timeout,
            x509_strict=config.x509_strict,
        )

        LOGGER.info("Testing CA compatibility")
        original_outcome = verifier.verify(original, "Original CA")
        regenerated_outcome = verifier.verify(regenerated.authority, "New CA")
        advance(RunStage.VERIFIED)
    finally:
        server.stop()

    advance(RunStage.REPORTED)
    return RunReport(
        original=original_outcome,
        regenerated=regenerated_outcome,
        output_path=output_path,
        basic_constraints_critical=regenerated.basic_constraints_critical,
        stages=stages,
    )


def log_report(report: RunReport, expect_original_accepted: bool | None) -> int:
    """Log the comparison of both outcomes and return the exit code."""
    if report.original.accepted:
        LOGGER.info("Original CA still trusts the new server certificate (backward compatible)")
    else:
        LOGGER.info("Original CA rejected the new server certificate: %s", report.original.reason)

    if not report.regenerated.accepted:
        LOGGER.error("Unexpected failure with new CA: %s", report.regenerated.reason)
        return EXIT_FAILURE

    if not report.succeeded(expect_original_accepted):
        LOGGER.warning(
            "Original CA outcome contradicts expectation: expected %s",
            "accepted" if expect_original_accepted else "rejected",
        )
        return EXIT_UNEXPECTED

    if report.backward_compatible:
        LOGGER.info("Regenerated CA is compatible with clients trusting the original CA")
    else:
        LOGGER.info("Regenerated CA is NOT compatible with clients trusting the original CA")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Regenerate the CA and report compatibility.

    Returns:
        Exit code (0 for success, 1 for failure, 2 for an unexpected original-CA outcome)
    """
    parser = argparse.ArgumentParser(
        description="Regenerate a CA certificate with critical basic constraints and "
        "test whether clients trusting the original CA accept it"
    )
    parser.add_argument(
        "-ca-cert",
        "--ca-cert",
        dest="ca_cert",
        type=Path,
        required=True,
        help="Path to PEM encoded CA certificate file",
    )
    parser.add_argument(
        "-ca-key",
        "--ca-key",
        dest="ca_key",
        type=Path,
        required=True,
        help="Path to PEM encoded CA private key file (PKCS#1 or PKCS#8, RSA)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("new-ca.pem"),
        help="Where to write the regenerated CA (default: new-ca.pem)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8443,
        help="Local port for the HTTPS server (default: 8443)",
    )
    parser.add_argument(
        "--non-critical",
        action="store_true",
        help="Emit basic constraints as non-critical instead",
    )
    parser.add_argument(
        "--preserve-ski",
        action="store_true",
        help="Copy the original subject key identifier instead of deriving it",
    )
    parser.add_argument(
        "--x509-strict",
        action="store_true",
        help="Apply OpenSSL strict X.509 checks in the client",
    )
    parser.add_argument(
        "--expect-original",
        choices=sorted(EXPECTATIONS),
        help="Expected outcome for the client trusting the original CA",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args, ignored = parser.parse_known_args(argv)

    set_log_level(args.verbose)
    if ignored:
        LOGGER.debug("Ignoring extra arguments: %s", ignored)

    config = RegenConfig(
        server_port=args.port,
        output_path=args.output,
        basic_constraints_critical=not args.non_critical,
        preserve_subject_key_identifier=args.preserve_ski,
        x509_strict=args.x509_strict,
    )

    try:
        report = run_compatibility_check(args.ca_cert, args.ca_key, config)
    except CARegenError as e:
        LOGGER.error("Regeneration failed after stage %s: %s", e.stage, e, extra={"stage": e.stage})
        return EXIT_FAILURE
    except Exception as e:
        LOGGER.error("Run failed: %s", e)
        return EXIT_FAILURE

    return log_report(report, EXPECTATIONS.get(args.expect_original))


if __name__ == "__main__":
    sys.exit(main())
