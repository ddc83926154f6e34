"""
Excepciones del pipeline de firma

Cada error conoce su código HTTP y un identificador estable (kind) que se
devuelve al cliente junto con el mensaje.
"""
from typing import Optional


class FirmaError(Exception):
    """Excepción base para errores en el pipeline de firma"""

    status_code = 500
    kind = "FirmaError"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict:
        payload = {"error": self.message, "kind": self.kind}
        if self.stage:
            payload["stage"] = self.stage
        return payload


class NotFoundError(FirmaError):
    """Archivo de entrada inexistente (certificado o XML)"""
    status_code = 400
    kind = "NotFound"


class DecryptionError(FirmaError):
    """Contraseña incorrecta o contenedor PKCS#12 corrupto"""
    status_code = 500
    kind = "DecryptionError"


class IncompleteBundleError(FirmaError):
    """El PKCS#12 no contiene clave privada o certificado"""
    status_code = 400
    kind = "IncompleteBundle"


class CertificateNotYetValidError(FirmaError):
    status_code = 400
    kind = "CertificateNotYetValid"


class CertificateExpiredError(FirmaError):
    status_code = 400
    kind = "CertificateExpired"


class SigningFailedError(FirmaError):
    """Error reportado por la capacidad externa de firma"""
    status_code = 500
    kind = "SigningFailed"


class SigningTimeoutError(SigningFailedError):
    """El firmador externo no respondió dentro del tiempo permitido"""
    status_code = 504
    kind = "SigningTimeout"


class MissingReferenceFieldError(FirmaError):
    status_code = 400
    kind = "MissingReferenceField"


class MissingIdAttributeError(FirmaError):
    status_code = 400
    kind = "MissingIdAttribute"


class ArtifactAlreadyExistsError(FirmaError):
    """Ya existe un artefacto firmado para el mismo identificador"""
    status_code = 400
    kind = "ArtifactAlreadyExists"


class PersistenceError(FirmaError):
    status_code = 500
    kind = "PersistenceError"


class InvalidPayloadError(FirmaError):
    """JSON o XML mal formado, o campos requeridos ausentes"""
    status_code = 400
    kind = "InvalidPayload"


class UnsupportedMethodError(FirmaError):
    status_code = 405
    kind = "UnsupportedMethod"


class UnsupportedContentTypeError(FirmaError):
    status_code = 415
    kind = "UnsupportedContentType"


class RouteNotFoundError(FirmaError):
    status_code = 404
    kind = "RouteNotFound"
