# PEM output for the instance certificate bundle and key
from __future__ import annotations
import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .authority import Authority
from .leaf import Leaf

log = logging.getLogger(__name__)

LINE_LENGTH = 64
CRLF = "\r\n"

CERTIFICATE = "CERTIFICATE"
RSA_PRIVATE_KEY = "RSA PRIVATE KEY"


@dataclass
class ExportedFiles:
    cert_path: Path
    key_path: Path


def pem_block(label: str, der: bytes) -> str:
    body = base64.b64encode(der).decode("ascii")
    lines = [body[i:i + LINE_LENGTH] for i in range(0, len(body), LINE_LENGTH)]
    return CRLF.join([f"-----BEGIN {label}-----", *lines, f"-----END {label}-----"]) + CRLF


def certificate_pem(cert: x509.Certificate) -> str:
    return pem_block(CERTIFICATE, cert.public_bytes(serialization.Encoding.DER))


def _write_text(path: Path, text: str) -> None:
    # bytes, so CRLF survives untouched on every platform
    path.write_bytes(text.encode("ascii"))
    log.info("Wrote %s", path)


def export_chain_and_key(
    leaf: Leaf,
    intermediate: Authority,
    output_dir: str | Path,
    filename_prefix: str,
) -> ExportedFiles:
    """
    Write <prefix>Cert.pem (leaf, then intermediate) and <prefix>Key.pem (PKCS#1 RSA key).

    The root is left out on purpose, peers get it out-of-band as the trust anchor.
    The two files are written one after the other; if the second write fails the
    pair on disk is inconsistent and the caller should just run the export again.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    chain = certificate_pem(leaf.certificate) + certificate_pem(intermediate.certificate)
    key_der = leaf.private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )

    files = ExportedFiles(out / f"{filename_prefix}Cert.pem", out / f"{filename_prefix}Key.pem")
    _write_text(files.cert_path, chain)
    _write_text(files.key_path, pem_block(RSA_PRIVATE_KEY, key_der))
    return files


def export_trust_anchor(root: Authority, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_text(path, certificate_pem(root.certificate))
    return path


def read_certificates(path: str | Path) -> List[x509.Certificate]:
    return x509.load_pem_x509_certificates(Path(path).read_bytes())
