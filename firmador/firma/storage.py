"""
Nombres de archivo y persistencia de XML firmados

Cada identificador produce como máximo un artefacto: el archivo se crea en
modo exclusivo y nunca se sobrescribe.
"""
import os
from pathlib import Path
from typing import Optional, Union

from .exceptions import ArtifactAlreadyExistsError, InvalidPayloadError, PersistenceError
from .identifier import DocumentFamily, DocumentIdentifier
from .pipeline_logger import PipelineLogger

FILENAME_PREFIX = "signed-"
PAD_WIDTH = 5


def pad_identifier(value: str, width: int = PAD_WIDTH) -> str:
    """Completa con ceros a la izquierda solo si el identificador es numérico"""
    if value.isdigit():
        return value.zfill(width)
    return value


def build_filename(family: DocumentFamily, identifier: DocumentIdentifier) -> str:
    """
    signed-<id>.xml o, para eventos, signed-<codigo>-<id>.xml
    """
    family = DocumentFamily(family)
    value = pad_identifier(identifier.value)
    if family is DocumentFamily.EVENTO:
        filename = f"{FILENAME_PREFIX}{identifier.event_code}-{value}.xml"
    else:
        filename = f"{FILENAME_PREFIX}{value}.xml"

    if "/" in filename or "\\" in filename or filename.startswith(".") or "\x00" in filename:
        raise InvalidPayloadError(f"Identificador inválido para nombre de archivo: {identifier.value!r}")
    return filename


class ArtifactStore:
    """Directorio de salida compartido por todas las solicitudes"""

    def __init__(self, output_dir: Union[str, Path], logger: Optional[PipelineLogger] = None):
        self.output_dir = Path(output_dir)
        self.logger = logger

    def ensure_output_dir(self) -> Path:
        existed = self.output_dir.exists()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        if not existed and self.logger is not None:
            self.logger.info(f"Carpeta de salida creada: {self.output_dir}")
        return self.output_dir

    def path_for(self, filename: str) -> Path:
        return self.output_dir / filename

    def read(self, filename: str) -> bytes:
        try:
            return self.path_for(filename).read_bytes()
        except OSError as e:
            raise PersistenceError(f"Error reading signed XML file: {e}") from e

    def persist(self, signed_document: Union[str, bytes], filename: str) -> str:
        """
        Escribe el XML firmado una única vez.

        Returns:
            El nombre del archivo escrito

        Raises:
            ArtifactAlreadyExistsError: Ya existe un archivo con ese nombre
            PersistenceError: Falla de E/S al escribir
        """
        if isinstance(signed_document, str):
            signed_document = signed_document.encode("utf-8")

        self.ensure_output_dir()
        file_path = self.path_for(filename)
        if self.logger is not None:
            self.logger.info(f"Archivo firmado será guardado en: {file_path}")

        try:
            handle = open(file_path, "xb")
        except FileExistsError:
            self._report_existing(filename, file_path)
            raise ArtifactAlreadyExistsError(f"El archivo {filename} ya existe.")
        except OSError as e:
            raise PersistenceError(f"Error saving signed XML: {e}") from e

        try:
            with handle:
                handle.write(signed_document)
        except OSError as e:
            # no debe quedar un archivo parcial
            try:
                os.unlink(file_path)
            except OSError:
                pass
            raise PersistenceError(f"Error saving signed XML: {e}") from e

        return filename

    def _report_existing(self, filename: str, file_path: Path) -> None:
        if self.logger is None:
            return
        self.logger.info(f"El archivo {filename} ya existe. Contenido del XML:")
        try:
            self.logger.info(file_path.read_text(encoding="utf-8", errors="replace"))
        except OSError as e:
            self.logger.error(f"No se pudo leer el archivo existente {filename}", error=str(e))
