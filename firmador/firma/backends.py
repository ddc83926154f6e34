"""
Backends de firma XMLDSig

- LibrarySigningBackend: firma enveloped en proceso con signxml/lxml
- ProcessSigningBackend: delega en un firmador Java externo (eventos)

Ambos reciben el XML, la ruta del P12 y la contraseña, y devuelven el XML
firmado como string. Un XML mal formado se reporta como InvalidPayloadError;
cualquier otra falla como SigningFailedError.
"""
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from lxml import etree
from signxml import XMLSigner
from signxml.algorithms import (
    CanonicalizationMethod,
    DigestAlgorithm,
    SignatureConstructionMethod,
    SignatureMethod,
)

from .certificate import load_certificate_bundle
from .exceptions import FirmaError, InvalidPayloadError, SigningFailedError, SigningTimeoutError
from .identifier import find_path, parse_compact
from .pipeline_logger import PipelineLogger

TEMP_XML_NAME = "temp-evento.xml"


class SigningBackend:
    """Contrato común de los firmadores"""

    name = "base"

    def sign(self, document: str, container_path: str, passphrase: str) -> str:
        raise NotImplementedError


def _reference_uri(root: etree._Element) -> Optional[str]:
    """#<Id del DE> si existe, None para firmar el documento completo"""
    if etree.QName(root).localname == "DE":
        de = root
    else:
        de, _ = find_path(root, ("rDE", "DE"))
    if de is not None and de.get("Id"):
        return f"#{de.get('Id')}"
    return None


class LibrarySigningBackend(SigningBackend):
    """
    Firma XML Digital Signature Enveloped:
    - RSA-SHA256
    - Digest SHA-256
    - Exclusive XML Canonicalization
    - X509Certificate en KeyInfo
    """

    name = "library"

    def __init__(self, logger: Optional[PipelineLogger] = None):
        self.logger = logger

    def sign(self, document: str, container_path: str, passphrase: str) -> str:
        try:
            bundle = load_certificate_bundle(container_path, passphrase)
            # se parsea una copia; el string recibido no se modifica
            root = parse_compact(document)
            reference_uri = _reference_uri(root)

            signer = XMLSigner(
                method=SignatureConstructionMethod.enveloped,
                signature_algorithm=SignatureMethod.RSA_SHA256,
                digest_algorithm=DigestAlgorithm.SHA256,
                c14n_algorithm=CanonicalizationMethod.EXCLUSIVE_XML_CANONICALIZATION_1_0,
            )
            signed_root = signer.sign(
                root,
                key=bundle.private_key_pem(),
                cert=bundle.certificate_pem().decode("ascii"),
                reference_uri=reference_uri,
            )
            signed_xml = etree.tostring(
                signed_root,
                encoding="utf-8",
                xml_declaration=True,
                pretty_print=False,
            ).decode("utf-8")
        except InvalidPayloadError:
            raise
        except FirmaError as e:
            raise SigningFailedError(f"Error signing XML: {e.message}") from e
        except Exception as e:
            raise SigningFailedError(f"Error signing XML: {e}") from e

        if self.logger is not None:
            self.logger.info("XML firmado exitosamente", backend=self.name, reference_uri=reference_uri)
        return signed_xml


class ProcessSigningBackend(SigningBackend):
    """
    Ejecuta `java -cp <classpath> SignXMLEvento <xml> <p12> <password>`.

    El XML se copia a un archivo temporal que se elimina al terminar el
    proceso, tanto en éxito como en error. El XML firmado se lee de stdout;
    cualquier salida en stderr se considera error.
    """

    name = "process"

    def __init__(
        self,
        java_class_path: str,
        java_bin: str = "java",
        main_class: str = "SignXMLEvento",
        timeout: Optional[float] = 60,
        logger: Optional[PipelineLogger] = None,
    ):
        self.java_class_path = java_class_path
        self.java_bin = java_bin
        self.main_class = main_class
        self.timeout = timeout
        self.logger = logger

    def build_command(self, xml_path: str, container_path: str, passphrase: str) -> list:
        return [
            self.java_bin,
            "-cp",
            self.java_class_path,
            self.main_class,
            xml_path,
            container_path,
            passphrase,
        ]

    def _log(self, message: str, **kwargs):
        if self.logger is not None:
            self.logger.info(message, **kwargs)

    def sign(self, document: str, container_path: str, passphrase: str) -> str:
        with tempfile.TemporaryDirectory(prefix="firmador-evento-") as tmpdir:
            temp_xml_path = Path(tmpdir) / TEMP_XML_NAME
            temp_xml_path.write_text(document, encoding="utf-8")
            self._log(f"Guardando el XML en el archivo temporal: {temp_xml_path}")

            cmd = self.build_command(str(temp_xml_path), container_path, passphrase)
            # la contraseña no se escribe en el log
            self._log(
                "Ejecutando el comando para firmar el XML: "
                + " ".join(cmd[:-1] + ["****"])
            )

            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    timeout=self.timeout,
                )
            except subprocess.TimeoutExpired as e:
                raise SigningTimeoutError(
                    f"El firmador externo no respondió en {self.timeout} segundos"
                ) from e
            except OSError as e:
                raise SigningFailedError(f"Error al ejecutar el comando: {e}") from e
            except UnicodeDecodeError as e:
                raise SigningFailedError(
                    f"La salida del firmador externo no es UTF-8 válido: {e}"
                ) from e

        self._log(f"Archivo temporal eliminado: {temp_xml_path}")

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise SigningFailedError(
                f"Error al ejecutar el comando (exit={result.returncode}): {detail[:500]}"
            )
        if result.stderr and result.stderr.strip():
            raise SigningFailedError(f"Error en stderr: {result.stderr.strip()[:500]}")
        if not result.stdout or not result.stdout.strip():
            raise SigningFailedError("El firmador externo no devolvió XML firmado")

        self._log("Comando ejecutado exitosamente", backend=self.name)
        return result.stdout
