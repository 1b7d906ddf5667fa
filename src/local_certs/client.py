# Talks to other local instances using the generated identity as the TLS client certificate
from __future__ import annotations
from typing import Dict, Optional

import requests

from .config import CertificateConfig

TIMEOUT = 30


class InstanceClient:
    def __init__(self, config: CertificateConfig, *, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        # the cert file already carries leaf + intermediate, which is what the peer needs to build the chain
        self.session.cert = (str(config.cert_path), str(config.key_path))
        self.session.verify = str(config.trust_anchor_path)

    def get(self, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", TIMEOUT)
        r = self.session.get(url, **kwargs)
        r.raise_for_status()
        return r

    def whoami(self, base_url: str) -> Dict[str, str]:
        """Ask a server which identity it saw on our client certificate."""
        return self.get(f"{base_url.rstrip('/')}/whoami").json()
