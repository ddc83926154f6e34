"""
Carga de certificados PKCS#12 (P12/PFX) y validación de vigencia

El contenedor se lee y descifra en cada solicitud; no se cachean claves
entre solicitudes.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .exceptions import (
    CertificateExpiredError,
    CertificateNotYetValidError,
    DecryptionError,
    IncompleteBundleError,
    NotFoundError,
)
from .pipeline_logger import PipelineLogger


def _not_valid_before(certificate: x509.Certificate) -> datetime:
    # cryptography >= 42 expone *_utc; versiones previas devuelven datetime naive en UTC
    if hasattr(certificate, "not_valid_before_utc"):
        return certificate.not_valid_before_utc
    return certificate.not_valid_before.replace(tzinfo=timezone.utc)


def _not_valid_after(certificate: x509.Certificate) -> datetime:
    if hasattr(certificate, "not_valid_after_utc"):
        return certificate.not_valid_after_utc
    return certificate.not_valid_after.replace(tzinfo=timezone.utc)


@dataclass
class CertificateBundle:
    """Clave privada y certificado hoja extraídos de un PKCS#12"""

    private_key: object
    certificate: x509.Certificate
    additional_certificates: List[x509.Certificate] = field(default_factory=list)

    def __post_init__(self):
        if self.private_key is None or self.certificate is None:
            raise IncompleteBundleError(
                "No se pudo encontrar la clave privada o el certificado en el archivo PKCS12."
            )

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def issuer(self) -> str:
        return self.certificate.issuer.rfc4514_string()

    @property
    def not_before(self) -> datetime:
        return _not_valid_before(self.certificate)

    @property
    def not_after(self) -> datetime:
        return _not_valid_after(self.certificate)

    def info(self) -> dict:
        """Información del certificado para auditoría y respuesta HTTP"""
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "validFrom": self.not_before.isoformat(),
            "validTo": self.not_after.isoformat(),
            "serialNumber": str(self.certificate.serial_number),
        }

    def certificate_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    def private_key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


def load_certificate_bundle(
    container_path: str,
    passphrase: Optional[str],
    logger: Optional[PipelineLogger] = None,
) -> CertificateBundle:
    """
    Carga clave privada y certificado desde un archivo PKCS#12.

    Si el contenedor trae varios certificados se toma el primero asociado a
    la clave; si ese slot está vacío, el primer certificado adicional.

    Args:
        container_path: Ruta al archivo P12/PFX
        passphrase: Contraseña del contenedor
        logger: Logger del pipeline (opcional)

    Returns:
        CertificateBundle

    Raises:
        NotFoundError: Si el archivo no existe
        DecryptionError: Contraseña incorrecta o archivo corrupto
        IncompleteBundleError: Falta la clave privada o el certificado
    """
    p12_file = Path(container_path) if container_path else None
    if p12_file is None or not p12_file.is_file():
        raise NotFoundError("Invalid certPath, certificate file does not exist")

    p12_data = p12_file.read_bytes()
    password_bytes = passphrase.encode("utf-8") if passphrase else None

    try:
        private_key, certificate, additional_certificates = pkcs12.load_key_and_certificates(
            p12_data,
            password_bytes,
            backend=default_backend(),
        )
    except (ValueError, TypeError) as e:
        raise DecryptionError(
            f"Contraseña del certificado P12 incorrecta o el archivo está corrupto: {e}"
        ) from e

    additional_certificates = list(additional_certificates or [])
    if certificate is None and additional_certificates:
        certificate = additional_certificates.pop(0)

    bundle = CertificateBundle(
        private_key=private_key,
        certificate=certificate,
        additional_certificates=additional_certificates,
    )

    if logger is not None:
        info = bundle.info()
        logger.info(
            "Certificate Information:\n"
            f"Subject: {info['subject']}\n"
            f"Issuer: {info['issuer']}\n"
            f"Valid From: {info['validFrom']}\n"
            f"Valid To: {info['validTo']}"
        )
    return bundle


def check_validity(
    bundle: CertificateBundle,
    now: Optional[datetime] = None,
    logger: Optional[PipelineLogger] = None,
) -> None:
    """
    Verifica que `now` esté dentro de [notBefore, notAfter].

    Ambos extremos se consideran válidos.

    Raises:
        CertificateNotYetValidError: now < notBefore
        CertificateExpiredError: now > notAfter
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    not_before = bundle.not_before
    not_after = bundle.not_after

    if now < not_before:
        raise CertificateNotYetValidError(
            f"The certificate is not valid before {not_before.isoformat()}."
        )
    if now > not_after:
        raise CertificateExpiredError(
            f"The expiration date ({not_after.isoformat()}) has passed."
        )

    if logger is not None:
        logger.info(
            "Certificado vigente",
            not_before=not_before.isoformat(),
            not_after=not_after.isoformat(),
        )
