# Command line entry point for generating and inspecting local instance certificates
from __future__ import annotations
import argparse
import logging
import uuid
from datetime import datetime, UTC
from typing import List

import requests

from .client import InstanceClient
from .config import load_config
from .errors import LocalCertsError
from .identity import InstanceIdentity
from .pem import read_certificates
from .writer import LocalCertificateWriter, instance_environment


def cmd_write(args) -> int:
    config = load_config()
    org = args.org or uuid.uuid4()
    space = args.space or uuid.uuid4()

    result = LocalCertificateWriter(config).write(org, space)

    print(f"Organization: {result.identity.organization_id}")
    print(f"Space:        {result.identity.space_id}")
    print(f"App:          {result.identity.app_id}")
    print(f"Instance:     {result.identity.instance_id}")
    print(f"Wrote {result.cert_path}, {result.key_path} (trust anchor: {result.trust_anchor_path})")

    if args.env:
        for name, value in instance_environment(result).items():
            print(f"{name}={value}")
    return 0


def cmd_show(args) -> int:
    config = load_config()
    if not config.cert_path.exists():
        print(f"No instance certificate at {config.cert_path}, run `write` first")
        return 1

    chain = read_certificates(config.cert_path)
    leaf = chain[0]
    identity = InstanceIdentity.from_certificate(leaf)

    for key, value in identity.as_dict().items():
        print(f"{key}: {value}")
    print(f"issuer: {leaf.issuer.rfc4514_string()}")
    print(f"valid until: {leaf.not_valid_after_utc.isoformat()}")
    if leaf.not_valid_after_utc <= datetime.now(UTC):
        print("Certificate has expired, run `write` again")
    print(f"chain length in {config.cert_path.name}: {len(chain)}")
    return 0


def cmd_serve(args) -> int:
    # imported here so `write`/`show` don't pull in flask
    from .server import run

    run(load_config(), host=args.host, port=args.port)
    return 0


def cmd_whoami(args) -> int:
    client = InstanceClient(load_config())
    try:
        identity = client.whoami(args.url)
    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        print(f"Error: server rejected the request ({status}): {e.response.text if e.response is not None else e}")
        return 1
    except requests.RequestException as e:
        # refused connections, TLS verification failures, timeouts
        print(f"Error: could not reach {args.url}: {e}")
        return 1

    for key, value in identity.items():
        print(f"{key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="local-certs")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    write = sub.add_parser("write", help="Issue a fresh instance certificate (creating the CAs if needed)")
    write.add_argument("--org", type=uuid.UUID, help="Organization id (random if omitted)")
    write.add_argument("--space", type=uuid.UUID, help="Space id (random if omitted)")
    write.add_argument("--env", action="store_true", help="Print CF_INSTANCE_CERT/CF_INSTANCE_KEY lines")
    write.set_defaults(func=cmd_write)

    show = sub.add_parser("show", help="Print the identity in the current instance certificate")
    show.set_defaults(func=cmd_show)

    serve = sub.add_parser("serve", help="Run an mTLS server using the instance certificate")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8443)
    serve.set_defaults(func=cmd_serve)

    whoami = sub.add_parser("whoami", help="Call a server's /whoami with the instance certificate")
    whoami.add_argument("--url", default="https://localhost:8443")
    whoami.set_defaults(func=cmd_whoami)

    return p


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except LocalCertsError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
