# Platform style instance identity, carried in the leaf certificate subject.
#
# Diego issued certificates look like
#   CN=<instanceId>, OU=organization:<orgId> + OU=space:<spaceId> + OU=app:<appId>
# The three OU values share one multi-valued RDN. DER sorts the members of that SET,
# which always puts them in app, space, organization order (shortest encoding first),
# so that is the order we build and the order consumers will read back.
from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import Dict, Union

from cryptography import x509
from cryptography.x509.oid import NameOID

from .errors import IdentityError

UUIDLike = Union[uuid.UUID, str]

APP_PREFIX = "app:"
SPACE_PREFIX = "space:"
ORGANIZATION_PREFIX = "organization:"


def as_uuid(value: UUIDLike) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValueError(f"{value!r} is not a UUID") from None


@dataclass(frozen=True)
class InstanceIdentity:
    organization_id: uuid.UUID
    space_id: uuid.UUID
    app_id: uuid.UUID
    instance_id: uuid.UUID

    @classmethod
    def generate(cls, organization_id: UUIDLike, space_id: UUIDLike) -> "InstanceIdentity":
        """Caller supplies org/space; app and instance ids are new on every call."""
        return cls(as_uuid(organization_id), as_uuid(space_id), uuid.uuid4(), uuid.uuid4())

    def subject(self) -> x509.Name:
        return x509.Name([
            x509.RelativeDistinguishedName([
                x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, f"{APP_PREFIX}{self.app_id}"),
                x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, f"{SPACE_PREFIX}{self.space_id}"),
                x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, f"{ORGANIZATION_PREFIX}{self.organization_id}"),
            ]),
            x509.RelativeDistinguishedName([
                x509.NameAttribute(NameOID.COMMON_NAME, str(self.instance_id)),
            ]),
        ])

    @classmethod
    def from_name(cls, name: x509.Name) -> "InstanceIdentity":
        cns = name.get_attributes_for_oid(NameOID.COMMON_NAME)
        if len(cns) != 1:
            raise IdentityError(f"Expected exactly one CN in {name.rfc4514_string()}")

        units: Dict[str, str] = {}
        for attr in name.get_attributes_for_oid(NameOID.ORGANIZATIONAL_UNIT_NAME):
            value = str(attr.value)
            for prefix in (APP_PREFIX, SPACE_PREFIX, ORGANIZATION_PREFIX):
                if value.startswith(prefix):
                    units[prefix] = value[len(prefix):]

        missing = [p.rstrip(":") for p in (APP_PREFIX, SPACE_PREFIX, ORGANIZATION_PREFIX) if p not in units]
        if missing:
            raise IdentityError(f"Subject {name.rfc4514_string()} has no OU for: {', '.join(missing)}")

        try:
            return cls(
                organization_id=as_uuid(units[ORGANIZATION_PREFIX]),
                space_id=as_uuid(units[SPACE_PREFIX]),
                app_id=as_uuid(units[APP_PREFIX]),
                instance_id=as_uuid(str(cns[0].value)),
            )
        except ValueError as e:
            raise IdentityError(f"Subject {name.rfc4514_string()}: {e}") from e

    @classmethod
    def from_certificate(cls, cert: x509.Certificate) -> "InstanceIdentity":
        return cls.from_name(cert.subject)

    def as_dict(self) -> Dict[str, str]:
        return {
            "organization_id": str(self.organization_id),
            "space_id": str(self.space_id),
            "app_id": str(self.app_id),
            "instance_id": str(self.instance_id),
        }
