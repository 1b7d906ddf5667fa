from pathlib import Path

from local_certs.config import CertificateConfig, load_config

ENV_VARS = [
    "LOCAL_CERTS_DIR",
    "LOCAL_CERTS_ROOT_PATH",
    "LOCAL_CERTS_INTERMEDIATE_PATH",
    "LOCAL_CERTS_OUTPUT_DIR",
    "LOCAL_CERTS_PREFIX",
    "LOCAL_CERTS_ALT_NAMES",
    "LOCAL_CERTS_ARCHIVE_PASSWORD",
]


def clear_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        # set first so teardown also removes whatever load_dotenv puts back
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_in_directory_layout(tmp_path):
    cfg = CertificateConfig.in_directory(tmp_path, filename_prefix="Demo")
    assert cfg.root_path == tmp_path / "LocalCertsCA.pfx"
    assert cfg.intermediate_path == tmp_path / "LocalCertsIntermediate.pfx"
    assert cfg.cert_path == tmp_path / "DemoCert.pem"
    assert cfg.key_path == tmp_path / "DemoKey.pem"
    assert cfg.trust_anchor_path == tmp_path / "LocalCertsGeneratedCA.pem"


def test_load_config_defaults(monkeypatch, tmp_path):
    clear_env(monkeypatch, tmp_path)
    cfg = load_config()
    assert cfg.output_dir == Path("GeneratedCertificates")
    assert cfg.filename_prefix == "LocalCertsInstance"
    assert cfg.alt_names == ("localhost", "127.0.0.1")
    assert cfg.archive_password is None


def test_load_config_from_env(monkeypatch, tmp_path):
    clear_env(monkeypatch, tmp_path)
    monkeypatch.setenv("LOCAL_CERTS_DIR", str(tmp_path / "base"))
    monkeypatch.setenv("LOCAL_CERTS_ROOT_PATH", str(tmp_path / "elsewhere" / "root.pfx"))
    monkeypatch.setenv("LOCAL_CERTS_PREFIX", "Svc")
    monkeypatch.setenv("LOCAL_CERTS_ALT_NAMES", " svc.local , ,10.0.0.1")
    monkeypatch.setenv("LOCAL_CERTS_ARCHIVE_PASSWORD", "pw")

    cfg = load_config()
    assert cfg.root_path == tmp_path / "elsewhere" / "root.pfx"
    assert cfg.intermediate_path == tmp_path / "base" / "LocalCertsIntermediate.pfx"
    assert cfg.cert_path == tmp_path / "base" / "SvcCert.pem"
    assert cfg.alt_names == ("svc.local", "10.0.0.1")
    assert cfg.archive_password == b"pw"


def test_load_config_reads_dotenv(monkeypatch, tmp_path):
    clear_env(monkeypatch, tmp_path)
    (tmp_path / ".env").write_text("LOCAL_CERTS_PREFIX=FromDotenv\n", encoding="utf-8")

    cfg = load_config()
    assert cfg.filename_prefix == "FromDotenv"
