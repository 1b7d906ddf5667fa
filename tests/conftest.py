import pytest

from local_certs.authority import create_intermediate, create_root
from local_certs.config import CertificateConfig
from local_certs.writer import LocalCertificateWriter

ORG_ID = "11111111-1111-1111-1111-111111111111"
SPACE_ID = "22222222-2222-2222-2222-222222222222"


# RSA key generation is the slow part, share the CAs across tests that don't touch disk
@pytest.fixture(scope="session")
def root():
    return create_root("TestRoot")


@pytest.fixture(scope="session")
def intermediate(root):
    return create_intermediate("TestIntermediate", root)


@pytest.fixture
def config(tmp_path):
    return CertificateConfig.in_directory(tmp_path / "GeneratedCertificates", alt_names=("localhost", "127.0.0.1"))


@pytest.fixture(scope="module")
def written(tmp_path_factory):
    """One full write into a throwaway directory: (config, result)."""
    cfg = CertificateConfig.in_directory(tmp_path_factory.mktemp("certs"), alt_names=("localhost",))
    return cfg, LocalCertificateWriter(cfg).write(ORG_ID, SPACE_ID)
