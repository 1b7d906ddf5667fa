# Root -> intermediate -> leaf -> PEM files, in one call
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from .authority import ensure_intermediate, ensure_root
from .config import CertificateConfig
from .identity import InstanceIdentity, UUIDLike
from .leaf import issue_leaf, subject_alt_names
from .pem import export_chain_and_key, export_trust_anchor

log = logging.getLogger(__name__)


@dataclass
class WriteResult:
    identity: InstanceIdentity
    cert_path: Path
    key_path: Path
    trust_anchor_path: Path


class LocalCertificateWriter:
    """
    Emulates the identity certificates a platform hands to each app instance.

    Not safe for concurrent use against the same output directory; archives are
    created atomically but the PEM pair is not.
    """

    def __init__(self, config: CertificateConfig):
        self.config = config

    def write(self, organization_id: UUIDLike, space_id: UUIDLike) -> WriteResult:
        cfg = self.config
        identity = InstanceIdentity.generate(organization_id, space_id)

        root = ensure_root(cfg.root_path, name=cfg.root_name, password=cfg.archive_password)
        intermediate = ensure_intermediate(
            cfg.intermediate_path, root, name=cfg.intermediate_name, password=cfg.archive_password
        )

        leaf = issue_leaf(identity.subject(), intermediate, alt_names=subject_alt_names(cfg.alt_names))
        files = export_chain_and_key(leaf, intermediate, cfg.output_dir, cfg.filename_prefix)
        anchor = export_trust_anchor(root, cfg.trust_anchor_path)

        log.info("Instance %s of app %s ready", identity.instance_id, identity.app_id)
        return WriteResult(identity, files.cert_path, files.key_path, anchor)


def instance_environment(result: WriteResult) -> Dict[str, str]:
    """Variables the platform uses to point an app at its identity files."""
    return {
        "CF_INSTANCE_CERT": str(result.cert_path.resolve()),
        "CF_INSTANCE_KEY": str(result.key_path.resolve()),
    }
