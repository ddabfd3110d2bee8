"""
HTTPS listener that serves AdmissionReview requests.

The API server POSTs an AdmissionReview to WEBHOOK_PATH and expects the
review response back as JSON.
"""

import json
import logging
import os
import ssl
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Type

from .admission import AdmissionReviewer, create_admission_response
from .config import TLS_CERT_FILE, TLS_KEY_FILE, WEBHOOK_PATH

logger = logging.getLogger(__name__)


def create_ssl_context(certs_dir: str) -> Optional[ssl.SSLContext]:
    """
    Load the serving certificate from `certs_dir`.

    Args:
        certs_dir: Directory holding tls.crt and tls.key

    Returns:
        SSLContext, or None if the certificate files are missing
    """
    cert_path = os.path.join(certs_dir, TLS_CERT_FILE)
    key_path = os.path.join(certs_dir, TLS_KEY_FILE)
    if not (os.path.exists(cert_path) and os.path.exists(key_path)):
        logger.warning(f"TLS certificates not found in {certs_dir}, serving plain HTTP")
        return None

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_path, key_path)
    logger.info(f"Loaded TLS certificates from {certs_dir}")
    return context


def make_handler(reviewer: AdmissionReviewer) -> Type[BaseHTTPRequestHandler]:
    """Build a request handler class bound to `reviewer`."""

    class AdmissionHandler(BaseHTTPRequestHandler):

        def do_POST(self):
            if self.path.split("?", 1)[0] != WEBHOOK_PATH:
                self._send_json(404, {"error": f"unknown path {self.path}"})
                return

            try:
                length = int(self.headers.get("Content-Length") or 0)
                review = json.loads(self.rfile.read(length) or b"null")
                if not isinstance(review, dict):
                    raise ValueError("body is not an AdmissionReview object")
            except ValueError as e:
                logger.error(f"Rejecting malformed AdmissionReview: {e}")
                self._send_json(400, create_admission_response("", allowed=False, message=f"malformed request: {e}"))
                return

            self._send_json(200, reviewer.review(review))

        def _send_json(self, status: int, body: dict) -> None:
            payload = json.dumps(body).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format, *args):
            logger.debug(format % args)

    return AdmissionHandler


def create_server(
    reviewer: AdmissionReviewer,
    port: int,
    ssl_context: Optional[ssl.SSLContext] = None,
    host: str = "0.0.0.0",
) -> ThreadingHTTPServer:
    """Bind the admission webhook server; each request runs on its own thread."""
    server = ThreadingHTTPServer((host, port), make_handler(reviewer))
    if ssl_context:
        server.socket = ssl_context.wrap_socket(server.socket, server_side=True)
    return server


def serve(reviewer: AdmissionReviewer, port: int, certs_dir: str, host: str = "0.0.0.0") -> None:
    """Serve AdmissionReview requests until interrupted."""
    ssl_context = create_ssl_context(certs_dir)
    server = create_server(reviewer, port, ssl_context, host)

    scheme = "HTTPS" if ssl_context else "HTTP"
    logger.info(f"Admission webhook listening on {scheme} port {server.server_address[1]}{WEBHOOK_PATH}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down admission webhook")
    finally:
        server.server_close()
