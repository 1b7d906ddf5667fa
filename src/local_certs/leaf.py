# Leaf (instance) certificates. Always freshly generated, never stored as an archive.
from __future__ import annotations
import ipaddress
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Iterable, List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID

from .authority import Authority, authority_key_identifier, generate_key, random_serial

log = logging.getLogger(__name__)

DEFAULT_LIFETIME = timedelta(days=1)


@dataclass
class Leaf:
    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey


def subject_alt_names(names: Iterable[str]) -> Optional[x509.SubjectAlternativeName]:
    """'127.0.0.1' -> IPAddress, anything else -> DNSName. None when there is nothing to add."""
    entries: List[x509.GeneralName] = []
    for name in names:
        try:
            entries.append(x509.IPAddress(ipaddress.ip_address(name)))
        except ValueError:
            entries.append(x509.DNSName(name))
    return x509.SubjectAlternativeName(entries) if entries else None


# Only the key usage bit TLS needs for an RSA signature based handshake
_DIGITAL_SIGNATURE_ONLY = x509.KeyUsage(
    digital_signature=True,
    content_commitment=False,
    key_encipherment=False,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=False,
    crl_sign=False,
    encipher_only=False,
    decipher_only=False,
)


def issue_leaf(
    subject: x509.Name,
    issuer: Authority,
    *,
    alt_names: Optional[x509.SubjectAlternativeName] = None,
    not_after: Optional[datetime] = None,
) -> Leaf:
    now = datetime.now(UTC)
    if not_after is None:
        # an intermediate close to its end still issues, just shorter lived leaves
        expires = min(now + DEFAULT_LIFETIME, issuer.not_after)
    elif not_after.tzinfo is None:
        # naive datetimes are UTC, same as the x509 builder treats them
        expires = not_after.replace(tzinfo=UTC)
    else:
        expires = not_after
    if expires > issuer.not_after:
        raise ValueError(
            f"Leaf not_after {expires.isoformat()} is past the issuer's not_after {issuer.not_after.isoformat()}"
        )

    key = generate_key()
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.certificate.subject)
        .public_key(key.public_key())
        .serial_number(random_serial())
        .not_valid_before(now)
        .not_valid_after(expires)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=False)
        .add_extension(_DIGITAL_SIGNATURE_ONLY, critical=False)
        .add_extension(authority_key_identifier(issuer), critical=False)
        # server + client auth, same as the platform's own instance certificates (usable for mTLS both ways)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
    )
    if alt_names is not None:
        builder = builder.add_extension(alt_names, critical=False)

    cert = builder.sign(private_key=issuer.private_key, algorithm=hashes.SHA256())
    log.debug("Issued leaf %s serial=%x", subject.rfc4514_string(), cert.serial_number)
    return Leaf(cert, key)
