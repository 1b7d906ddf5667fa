# config.py (import this early in your app)
from __future__ import annotations
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv, find_dotenv

ROOT_NAME = "LocalCertsGeneratedCA"
INTERMEDIATE_NAME = "LocalCertsGeneratedIntermediate"
FILENAME_PREFIX = "LocalCertsInstance"
DEFAULT_DIR = "GeneratedCertificates"
DEFAULT_ALT_NAMES = "localhost,127.0.0.1"


@dataclass(frozen=True)
class CertificateConfig:
    root_path: Path
    intermediate_path: Path
    output_dir: Path
    filename_prefix: str = FILENAME_PREFIX
    root_name: str = ROOT_NAME
    intermediate_name: str = INTERMEDIATE_NAME
    alt_names: Tuple[str, ...] = field(default_factory=tuple)
    archive_password: Optional[bytes] = None

    @classmethod
    def in_directory(cls, directory: str | Path, **overrides) -> "CertificateConfig":
        """Default layout: both archives and the PEM output share one directory."""
        d = Path(directory)
        cfg = cls(
            root_path=d / "LocalCertsCA.pfx",
            intermediate_path=d / "LocalCertsIntermediate.pfx",
            output_dir=d,
        )
        return replace(cfg, **overrides) if overrides else cfg

    @property
    def cert_path(self) -> Path:
        return self.output_dir / f"{self.filename_prefix}Cert.pem"

    @property
    def key_path(self) -> Path:
        return self.output_dir / f"{self.filename_prefix}Key.pem"

    @property
    def trust_anchor_path(self) -> Path:
        return self.output_dir / f"{self.root_name}.pem"


def _split_names(raw: str) -> Tuple[str, ...]:
    return tuple(n.strip() for n in raw.split(",") if n.strip())


def load_config() -> CertificateConfig:
    # Loads ${workspace}/.env if present; doesn't overwrite existing env
    load_dotenv(find_dotenv(usecwd=True), override=False)

    base = Path(os.getenv("LOCAL_CERTS_DIR", DEFAULT_DIR))
    cfg = CertificateConfig.in_directory(base)

    password = os.getenv("LOCAL_CERTS_ARCHIVE_PASSWORD")
    return replace(
        cfg,
        root_path=Path(os.getenv("LOCAL_CERTS_ROOT_PATH", cfg.root_path)),
        intermediate_path=Path(os.getenv("LOCAL_CERTS_INTERMEDIATE_PATH", cfg.intermediate_path)),
        output_dir=Path(os.getenv("LOCAL_CERTS_OUTPUT_DIR", cfg.output_dir)),
        filename_prefix=os.getenv("LOCAL_CERTS_PREFIX", FILENAME_PREFIX),
        alt_names=_split_names(os.getenv("LOCAL_CERTS_ALT_NAMES", DEFAULT_ALT_NAMES)),
        archive_password=password.encode() if password else None,
    )
