"""
Pipeline de firma: certificado, vigencia, firma, identificador y persistencia
"""
from .backends import LibrarySigningBackend, ProcessSigningBackend, SigningBackend
from .certificate import CertificateBundle, check_validity, load_certificate_bundle
from .dispatcher import SignedArtifact, SigningDispatcher, SigningRequest, Stage
from .exceptions import FirmaError
from .identifier import DocumentFamily, DocumentIdentifier, extract_identifier, parse_event_filename
from .pipeline_logger import PipelineLogger
from .storage import ArtifactStore, build_filename

__all__ = [
    "ArtifactStore",
    "CertificateBundle",
    "DocumentFamily",
    "DocumentIdentifier",
    "FirmaError",
    "LibrarySigningBackend",
    "PipelineLogger",
    "ProcessSigningBackend",
    "SignedArtifact",
    "SigningBackend",
    "SigningDispatcher",
    "SigningRequest",
    "Stage",
    "build_filename",
    "check_validity",
    "extract_identifier",
    "load_certificate_bundle",
    "parse_event_filename",
]
