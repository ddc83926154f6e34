"""
Orquestación del pipeline de firma por solicitud

RECEIVED → CERTIFICATE_LOADED → VALIDITY_CHECKED → SIGNED →
IDENTIFIER_EXTRACTED → PERSISTED → RESPONDED

Una falla en cualquier etapa termina la solicitud sin reintentos. El error
lanzado lleva su kind y la última etapa completada (stage).
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from .backends import SigningBackend
from .certificate import check_validity, load_certificate_bundle
from .exceptions import FirmaError, SigningFailedError
from .identifier import DocumentFamily, DocumentIdentifier, extract_identifier
from .pipeline_logger import PipelineLogger
from .storage import ArtifactStore, build_filename


class Stage(str, Enum):
    RECEIVED = "received"
    CERTIFICATE_LOADED = "certificate_loaded"
    VALIDITY_CHECKED = "validity_checked"
    SIGNED = "signed"
    IDENTIFIER_EXTRACTED = "identifier_extracted"
    PERSISTED = "persisted"
    RESPONDED = "responded"


@dataclass(frozen=True)
class SigningRequest:
    document: str
    container_path: str
    passphrase: str
    family: DocumentFamily = DocumentFamily.REGULAR
    # nombre del archivo de origen; define el identificador de los eventos
    source_name: Optional[str] = None

    def __repr__(self):
        return (
            f"SigningRequest(family={self.family.value!r}, container_path={self.container_path!r}, "
            f"source_name={self.source_name!r})"
        )


@dataclass
class SignedArtifact:
    filename: str
    content: bytes
    family: DocumentFamily
    identifier: DocumentIdentifier
    cert_info: Dict[str, str] = field(default_factory=dict)

    def to_response(self) -> dict:
        return {
            "message": "XML received and signed successfully",
            "filename": self.filename,
            "xml": self.content.decode("utf-8"),
            "certInfo": self.cert_info,
        }


class SigningDispatcher:
    """Ejecuta las etapas del pipeline en orden para una solicitud"""

    def __init__(
        self,
        store: ArtifactStore,
        backends: Dict[DocumentFamily, SigningBackend],
        logger: PipelineLogger,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.backends = backends
        self.logger = logger
        self.clock = clock

    def backend_for(self, family: DocumentFamily) -> SigningBackend:
        try:
            return self.backends[family]
        except KeyError:
            raise SigningFailedError(
                f"No hay firmador configurado para documentos de tipo {family.value}"
            ) from None

    def dispatch(self, request: SigningRequest) -> SignedArtifact:
        stage = Stage.RECEIVED
        # log_context registra el fallo con stage y kind
        with self.logger.log_context("firma", family=request.family.value):
            try:
                backend = self.backend_for(request.family)

                bundle = load_certificate_bundle(request.container_path, request.passphrase, self.logger)
                stage = Stage.CERTIFICATE_LOADED

                now = self.clock() if self.clock else None
                check_validity(bundle, now=now, logger=self.logger)
                stage = Stage.VALIDITY_CHECKED

                signed_xml = backend.sign(request.document, request.container_path, request.passphrase)
                stage = Stage.SIGNED

                identifier = extract_identifier(request.document, request.family, request.source_name)
                if identifier.event_name:
                    self.logger.info(f"Tipo de evento proporcionado: {identifier.event_name}")
                stage = Stage.IDENTIFIER_EXTRACTED

                filename = build_filename(request.family, identifier)
                self.store.persist(signed_xml, filename)
                stage = Stage.PERSISTED

                content = self.store.read(filename)
                self.logger.info(f"Signed XML:\n{content.decode('utf-8', errors='replace')}")
                stage = Stage.RESPONDED
            except FirmaError as e:
                e.stage = e.stage or stage.value
                raise

        return SignedArtifact(
            filename=filename,
            content=content,
            family=request.family,
            identifier=identifier,
            cert_info=bundle.info(),
        )
