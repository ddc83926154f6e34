"""
Pytest configuration y fixtures para tests del firmador
"""
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric import rsa

from firmador.config import FirmadorConfig
from firmador.firma.pipeline_logger import PipelineLogger
from tests.helpers import P12_PASSWORD, make_certificate, write_p12


# Registrar markers personalizados para evitar warnings
def pytest_configure(config):
    """Registra markers personalizados"""
    config.addinivalue_line(
        "markers", "requires_signxml: marca test que requiere signxml"
    )
    config.addinivalue_line(
        "markers", "requires_lxml: marca test que requiere lxml"
    )


def has_pkg(pkg_name: str) -> bool:
    """Verifica si un paquete está instalado"""
    try:
        __import__(pkg_name)
        return True
    except ImportError:
        return False


@pytest.fixture(autouse=True)
def check_optional_deps(request: pytest.FixtureRequest):
    """Skippea tests marcados si falta el paquete requerido"""
    marker_to_pkg = {
        "requires_signxml": "signxml",
        "requires_lxml": "lxml",
    }
    missing = [
        pkg for marker, pkg in marker_to_pkg.items()
        if request.node.get_closest_marker(marker) and not has_pkg(pkg)
    ]
    if missing:
        pytest.skip(
            f"Faltan paquetes: {', '.join(missing)}. Instale con: pip install {' '.join(missing)}"
        )


@pytest.fixture(scope="session")
def private_key():
    """Clave RSA 2048 compartida por la sesión"""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
        backend=default_backend()
    )


@pytest.fixture
def valid_certificate(private_key):
    now = datetime.now(timezone.utc)
    return make_certificate(private_key, now - timedelta(days=1), now + timedelta(days=365))


@pytest.fixture
def valid_p12(tmp_path, private_key, valid_certificate):
    """(ruta, contraseña) de un P12 vigente"""
    return write_p12(tmp_path / "test_cert.p12", private_key, valid_certificate), P12_PASSWORD


@pytest.fixture
def expired_p12(tmp_path, private_key):
    now = datetime.now(timezone.utc)
    cert = make_certificate(private_key, now - timedelta(days=400), now - timedelta(days=35))
    return write_p12(tmp_path / "expired.p12", private_key, cert), P12_PASSWORD


@pytest.fixture
def future_p12(tmp_path, private_key):
    now = datetime.now(timezone.utc)
    cert = make_certificate(private_key, now + timedelta(days=10), now + timedelta(days=400))
    return write_p12(tmp_path / "future.p12", private_key, cert), P12_PASSWORD


@pytest.fixture
def pipeline_logger(tmp_path):
    logger = PipelineLogger("firmador_test", log_dir=tmp_path / "logs", console=False)
    yield logger
    logger.close()


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "output"


@pytest.fixture
def firmador_config(valid_p12, output_dir, tmp_path):
    cert_path, password = valid_p12
    return FirmadorConfig(
        cert_path=cert_path,
        cert_password=password,
        java_class_path=str(tmp_path / "classes"),
        output_dir=output_dir,
        log_dir=tmp_path / "logs",
        sign_timeout=5,
    )
