# Local mTLS demo server, served with the generated instance certificate
# Routes:
#   /        -> identity of this instance (from its own certificate)
#   /whoami  -> identity of the calling instance (from its client certificate)

from __future__ import annotations
import ssl

from cryptography import x509
from flask import Flask, jsonify, request

from .config import CertificateConfig
from .errors import IdentityError
from .identity import InstanceIdentity
from .pem import read_certificates


def build_ssl_context(config: CertificateConfig) -> ssl.SSLContext:
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(config.cert_path, config.key_path)
    # client certs are asked for but optional, /whoami answers 401 without one
    ctx.load_verify_locations(cafile=config.trust_anchor_path)
    ctx.verify_mode = ssl.CERT_OPTIONAL
    return ctx


def create_app(config: CertificateConfig) -> Flask:
    app = Flask(__name__)
    own = InstanceIdentity.from_certificate(read_certificates(config.cert_path)[0])

    @app.get("/")
    def index():
        return jsonify(own.as_dict())

    @app.get("/whoami")
    def whoami():
        # werkzeug's dev server puts the verified peer certificate here
        pem = request.environ.get("SSL_CLIENT_CERT")
        if not pem:
            return "No client certificate presented.", 401

        cert = x509.load_pem_x509_certificate(pem.encode())
        try:
            caller = InstanceIdentity.from_certificate(cert)
        except IdentityError as e:
            return f"Client certificate is not an instance identity: {e}", 400
        return jsonify(caller.as_dict())

    return app


def run(config: CertificateConfig, host: str = "127.0.0.1", port: int = 8443) -> None:
    app = create_app(config)
    app.run(host=host, port=port, ssl_context=build_ssl_context(config))
