"""
Configuración del firmador

Centraliza la lectura de variables de entorno (.env vía python-dotenv).
La ausencia de una variable requerida impide iniciar el servidor.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class FirmadorConfigError(Exception):
    """Error de configuración del firmador"""
    pass


def _getenv(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Primer valor no vacío entre varios nombres de variable"""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


@dataclass
class FirmadorConfig:
    cert_path: Optional[str]
    cert_password: Optional[str]
    java_class_path: Optional[str]
    output_dir: Path = Path("output")
    log_dir: Optional[Path] = Path("logs")
    sign_timeout: float = 60.0
    java_bin: str = "java"
    java_main_class: str = "SignXMLEvento"
    host: str = "localhost"
    port: int = 3002

    @classmethod
    def from_env(cls, validate: bool = True) -> "FirmadorConfig":
        """
        Construye la configuración desde variables de entorno.

        Variables:
        - FIRMA_CERT_PATH (o CERT_PATH): certificado P12 por defecto
        - FIRMA_CERT_PASSWORD (o PASSWORD): contraseña del P12
        - FIRMA_JAVA_CLASS_PATH (o JAVA_CLASS_PATH): classpath del firmador de eventos
        - FIRMA_OUTPUT_DIR, FIRMA_LOG_DIR, FIRMA_SIGN_TIMEOUT
        - FIRMA_JAVA_BIN, FIRMA_JAVA_MAIN_CLASS, FIRMA_HOST, FIRMA_PORT

        Raises:
            FirmadorConfigError: Si falta una variable requerida o un valor es inválido
        """
        load_dotenv()

        timeout_raw = _getenv("FIRMA_SIGN_TIMEOUT", default="60")
        port_raw = _getenv("FIRMA_PORT", "PORT", default="3002")
        try:
            sign_timeout = float(timeout_raw)
            port = int(port_raw)
        except ValueError as e:
            raise FirmadorConfigError(f"Valor numérico inválido en configuración: {e}") from e

        config = cls(
            cert_path=_getenv("FIRMA_CERT_PATH", "CERT_PATH"),
            cert_password=_getenv("FIRMA_CERT_PASSWORD", "PASSWORD"),
            java_class_path=_getenv("FIRMA_JAVA_CLASS_PATH", "JAVA_CLASS_PATH"),
            output_dir=Path(_getenv("FIRMA_OUTPUT_DIR", default="output")),
            log_dir=Path(_getenv("FIRMA_LOG_DIR", default="logs")),
            sign_timeout=sign_timeout,
            java_bin=_getenv("FIRMA_JAVA_BIN", default="java"),
            java_main_class=_getenv("FIRMA_JAVA_MAIN_CLASS", default="SignXMLEvento"),
            host=_getenv("FIRMA_HOST", default="localhost"),
            port=port,
        )
        if validate:
            config.validate()
        return config

    def validate(self) -> None:
        missing = []
        if not self.cert_path:
            missing.append("FIRMA_CERT_PATH")
        if not self.cert_password:
            missing.append("FIRMA_CERT_PASSWORD")
        if not self.java_class_path:
            missing.append("FIRMA_JAVA_CLASS_PATH")
        if missing:
            raise FirmadorConfigError(
                f"Variables de entorno requeridas no configuradas: {', '.join(missing)}. "
                "Configure el archivo .env"
            )
        if self.sign_timeout <= 0:
            raise FirmadorConfigError("FIRMA_SIGN_TIMEOUT debe ser mayor a 0")
