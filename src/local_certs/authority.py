# Root and intermediate certificate authorities, created once and reused from disk as PKCS#12 archives.
from __future__ import annotations
import logging
import os
import secrets
import tempfile
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from .errors import ArchiveError, AuthorityExpiredError, ChainMismatchError

log = logging.getLogger(__name__)

KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
SERIAL_BYTES = 8

# Root lifetime is fixed, the intermediate inherits it
ROOT_NOT_AFTER = datetime(2039, 12, 31, 23, 59, 59, tzinfo=UTC)


@dataclass
class Authority:
    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey

    @property
    def not_after(self) -> datetime:
        return self.certificate.not_valid_after_utc


def generate_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=KEY_SIZE)


def random_serial() -> int:
    # 8 random bytes; x509 serials must be positive so retry on the (unlikely) zero
    while True:
        serial = int.from_bytes(secrets.token_bytes(SERIAL_BYTES), "big")
        if serial:
            return serial


def common_name(name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])


def authority_key_identifier(issuer: Authority) -> x509.AuthorityKeyIdentifier:
    # strict path validation (VERIFY_X509_STRICT, webpki) wants AKI on everything below the root
    return x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer.private_key.public_key())


_CA_KEY_USAGE = x509.KeyUsage(
    digital_signature=False,
    content_commitment=False,
    key_encipherment=False,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=True,
    crl_sign=True,
    encipher_only=False,
    decipher_only=False,
)


def create_root(
    name: str,
    *,
    not_before: Optional[datetime] = None,
    not_after: datetime = ROOT_NOT_AFTER,
) -> Authority:
    """Build a self-signed root CA. No I/O."""
    key = generate_key()
    subject = issuer = common_name(name)

    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(random_serial())
        .not_valid_before(not_before or datetime.now(UTC))
        .not_valid_after(not_after)
        # no path length limit here, the root has to be able to sign the intermediate CA
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(_CA_KEY_USAGE, critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(private_key=key, algorithm=hashes.SHA256())
    )
    return Authority(cert, key)


def create_intermediate(name: str, root: Authority, *, not_before: Optional[datetime] = None) -> Authority:
    """Build an intermediate CA signed by `root`, expiring together with it. No I/O."""
    key = generate_key()

    cert = (
        x509.CertificateBuilder()
        .subject_name(common_name(name))
        .issuer_name(root.certificate.subject)
        .public_key(key.public_key())
        .serial_number(random_serial())
        .not_valid_before(not_before or datetime.now(UTC))
        .not_valid_after(root.not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .add_extension(_CA_KEY_USAGE, critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(authority_key_identifier(root), critical=False)
        .sign(private_key=root.private_key, algorithm=hashes.SHA256())
    )
    return Authority(cert, key)


def _encryption(password: Optional[bytes]) -> serialization.KeySerializationEncryption:
    if password:
        return serialization.BestAvailableEncryption(password)
    return serialization.NoEncryption()


def dump_authority(authority: Authority, password: Optional[bytes] = None) -> bytes:
    cn = authority.certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    friendly = cn[0].value.encode() if cn else None
    return pkcs12.serialize_key_and_certificates(
        friendly, authority.private_key, authority.certificate, None, _encryption(password)
    )


def load_authority(path: str | Path, password: Optional[bytes] = None) -> Authority:
    """Read a PKCS#12 archive. A corrupt archive raises ArchiveError instead of being regenerated."""
    path = Path(path)
    data = path.read_bytes()
    try:
        key, cert, _extra = pkcs12.load_key_and_certificates(data, password)
    except (ValueError, TypeError) as e:
        raise ArchiveError(f"Could not read certificate archive {path}: {e}") from e

    if cert is None or key is None:
        raise ArchiveError(f"Certificate archive {path} must hold both a certificate and its private key")
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ArchiveError(f"Certificate archive {path} holds a {type(key).__name__}, expected an RSA key")
    return Authority(cert, key)


def save_authority(path: str | Path, authority: Authority, password: Optional[bytes] = None) -> Authority:
    """
    Persist `authority` at `path` unless somebody else already did.

    The archive is written to a temp file next to `path` and hard-linked into place,
    so readers never see a half written file and an existing archive is never overwritten.
    Returns whichever authority ends up on disk.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = dump_authority(authority, password)

    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        try:
            os.link(tmp, path)
        except FileExistsError:
            log.warning("%s was created concurrently, using the archive already on disk", path)
            return load_authority(path, password)
    finally:
        os.unlink(tmp)

    log.info("Wrote %s", path)
    return authority


def _check_not_expired(authority: Authority, path: Path) -> None:
    if authority.not_after <= datetime.now(UTC):
        raise AuthorityExpiredError(
            f"{path} expired on {authority.not_after.isoformat()}; delete it to generate a new one"
        )


def ensure_root(path: str | Path, *, name: str, password: Optional[bytes] = None) -> Authority:
    path = Path(path)
    if path.exists():
        root = load_authority(path, password)
        _check_not_expired(root, path)
        log.debug("Reusing root CA %s from %s", root.certificate.subject.rfc4514_string(), path)
        return root

    log.info("Creating root CA CN=%s", name)
    # save_authority may hand back an archive another process wrote first
    root = save_authority(path, create_root(name), password)
    _check_not_expired(root, path)
    return root


def ensure_intermediate(
    path: str | Path,
    root: Authority,
    *,
    name: str,
    password: Optional[bytes] = None,
) -> Authority:
    path = Path(path)
    if path.exists():
        intermediate = load_authority(path, password)
        _check_not_expired(intermediate, path)
        _check_issued_by(intermediate, root, path)
        log.debug("Reusing intermediate CA %s from %s", intermediate.certificate.subject.rfc4514_string(), path)
        return intermediate

    log.info("Creating intermediate CA CN=%s", name)
    intermediate = save_authority(path, create_intermediate(name, root), password)
    _check_not_expired(intermediate, path)
    _check_issued_by(intermediate, root, path)
    return intermediate


def _check_issued_by(child: Authority, parent: Authority, path: Path) -> None:
    # A regenerated root leaves an intermediate on disk that nothing trusts anymore
    try:
        child.certificate.verify_directly_issued_by(parent.certificate)
    except (ValueError, TypeError, InvalidSignature) as e:
        raise ChainMismatchError(
            f"{path} was not issued by {parent.certificate.subject.rfc4514_string()}; "
            "delete it to generate a new intermediate"
        ) from e
