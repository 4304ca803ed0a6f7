"""Ephemeral HTTPS server presenting a single leaf certificate."""

import ssl
import tempfile
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from .cert_utils import serialize_certificate, serialize_private_key
from .config import RESPONSE_BODY
from .logging_config import LOGGER
from .models import LeafCertificate


class PlainTextHandler(BaseHTTPRequestHandler):
    """Answers every method and path with 200 and the server's fixed body."""

    protocol_version = "HTTP/1.1"

    def _respond(self) -> None:
        body = self.server.response_body
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    do_GET = _respond
    do_POST = _respond
    do_PUT = _respond
    do_DELETE = _respond
    do_PATCH = _respond
    do_HEAD = _respond

    def log_message(self, format: str, *args) -> None:
        LOGGER.debug("%s %s", self.address_string(), format % args)


class TLSHTTPServer(ThreadingHTTPServer):
    """ThreadingHTTPServer whose listening socket is wrapped in TLS.

    The accept loop never handshakes; each connection completes its TLS
    handshake on its own handler thread, bounded by handshake_timeout.
    """

    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        body: bytes,
        context: ssl.SSLContext,
        handshake_timeout: float = 5.0,
    ) -> None:
        super().__init__(address, PlainTextHandler)
        self.response_body = body
        self.handshake_timeout = handshake_timeout
        self.socket = context.wrap_socket(
            self.socket, server_side=True, do_handshake_on_connect=False
        )

    def finish_request(self, request, client_address) -> None:
        request.settimeout(self.handshake_timeout)
        try:
            request.do_handshake()
        except (ssl.SSLError, OSError) as e:
            LOGGER.debug("TLS handshake with %s failed: %s", client_address, e)
            return
        super().finish_request(request, client_address)

    def handle_error(self, request, client_address) -> None:
        LOGGER.debug("Request from %s failed", client_address, exc_info=True)


class EphemeralTLSServer:
    """HTTPS listener hosting one leaf certificate for the duration of a run.

    Usage:
        with EphemeralTLSServer(leaf, port=0) as server:
            verifier = TrustVerifier(port=server.port)
    """

    def __init__(
        self,
        leaf: LeafCertificate,
        host: str = "127.0.0.1",
        port: int = 8443,
        body: str = RESPONSE_BODY,
        handshake_timeout: float = 5.0,
    ) -> None:
        """Initialize server settings; nothing is bound until start().

        Args:
            leaf: Server certificate and key to present
            host: Address to bind
            port: Port to bind (0 picks a free port)
            body: Plaintext response body
            handshake_timeout: Per-connection deadline for the TLS handshake
        """
        self.leaf = leaf
        self.host = host
        self._port = port
        self.body = body
        self.handshake_timeout = handshake_timeout
        self._httpd: TLSHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()

    @property
    def port(self) -> int:
        """Bound port once started, configured port otherwise."""
        if self._httpd is not None:
            return self._httpd.server_address[1]
        return self._port

    @property
    def running(self) -> bool:
        return self._httpd is not None

    def _build_context(self) -> ssl.SSLContext:
        """Create server TLS context holding only the leaf chain.

        load_cert_chain only reads from files, so the PEMs live in a private
        temporary directory until the context has loaded them.
        """
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        with tempfile.TemporaryDirectory(prefix="ca-regen-") as tmp_dir:
            cert_path = Path(tmp_dir) / "server.pem"
            key_path = Path(tmp_dir) / "server.key"
            cert_path.write_bytes(serialize_certificate(self.leaf.certificate))
            key_path.touch(mode=0o600)
            key_path.write_bytes(serialize_private_key(self.leaf.private_key))
            context.load_cert_chain(certfile=cert_path, keyfile=key_path)
        return context

    def _serve(self, httpd: TLSHTTPServer) -> None:
        self._ready.set()
        try:
            httpd.serve_forever(poll_interval=0.1)
        except Exception:
            LOGGER.exception("Server error")

    def start(self, timeout: float = 5.0) -> "EphemeralTLSServer":
        """Bind the listener and start the accept loop on a daemon thread.

        Blocks until the loop thread signals readiness.

        Raises:
            RuntimeError: If already started or the loop does not start in time
            OSError: If the address cannot be bound
        """
        if self._httpd is not None:
            raise RuntimeError("server already started")

        self._ready.clear()
        self._httpd = TLSHTTPServer(
            (self.host, self._port),
            self.body.encode("utf-8"),
            self._build_context(),
            handshake_timeout=self.handshake_timeout,
        )
        self._thread = threading.Thread(
            target=self._serve, args=(self._httpd,), name="ephemeral-tls-server", daemon=True
        )
        self._thread.start()

        if not self._ready.wait(timeout):
            self.stop()
            raise RuntimeError(f"server did not become ready within {timeout}s")

        LOGGER.info("Web server started on https://%s:%d", self.host, self.port)
        return self

    def stop(self) -> None:
        """Shut down the listener; safe to call more than once."""
        httpd, thread = self._httpd, self._thread
        if httpd is None:
            return
        self._httpd = None
        self._thread = None
        httpd.shutdown()
        httpd.server_close()
        if thread is not None:
            thread.join(timeout=1.0)
        LOGGER.debug("Web server stopped")

    def __enter__(self) -> "EphemeralTLSServer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
