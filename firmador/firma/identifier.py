"""
Extracción del identificador de negocio de un documento

El identificador define el nombre del artefacto firmado y depende de la
familia del documento:
- regular: rDE/DE/gCamDEAsoc/dCdCDERef (referencia al documento asociado)
- evento:  código de evento y número tomados del nombre del archivo
- cdc:     atributo Id del elemento DE
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from lxml import etree

from .exceptions import (
    InvalidPayloadError,
    MissingIdAttributeError,
    MissingReferenceFieldError,
)

REFERENCE_PATH = ("rDE", "DE", "gCamDEAsoc", "dCdCDERef")

# Código de 4 letras → nombre del evento
EVENT_TYPES = {
    "gene": "generar",
    "canc": "cancelacion",
    "inut": "inutilizacion",
    "conf": "conformidad",
    "disc": "disconformidad",
    "desc": "desconocimiento",
    "noti": "notificacion",
}
UNKNOWN_EVENT = "desconocido"
DEFAULT_EVENT_CODE = "evento"

_EVENT_CODE_RE = re.compile(r"xml-(\w{4})-")
_EVENT_NUMBER_RE = re.compile(r"-(\d+)\.xml$")


class DocumentFamily(str, Enum):
    REGULAR = "regular"
    EVENTO = "evento"
    CDC = "cdc"


@dataclass(frozen=True)
class DocumentIdentifier:
    value: str
    event_code: Optional[str] = None
    event_name: Optional[str] = None


def _local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def parse_compact(document: Union[str, bytes]) -> etree._Element:
    """Parsea el documento sin resolver entidades ni acceder a la red"""
    if isinstance(document, str):
        document = document.encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=False)
    try:
        return etree.fromstring(document, parser=parser)
    except etree.XMLSyntaxError as e:
        raise InvalidPayloadError(f"XML mal formado: {e}") from e


def find_path(root: etree._Element, segments: Sequence[str]) -> Tuple[Optional[etree._Element], Optional[str]]:
    """
    Recorre el árbol por nombre local, ignorando namespaces.

    El primer segmento debe coincidir con la raíz.

    Returns:
        (elemento, None) si el camino existe, o (None, segmento faltante)
    """
    if not segments or _local_name(root) != segments[0]:
        return None, segments[0] if segments else None

    current = root
    for segment in segments[1:]:
        child = next(
            (c for c in current if isinstance(c.tag, str) and _local_name(c) == segment),
            None,
        )
        if child is None:
            return None, segment
        current = child
    return current, None


def parse_event_filename(file_name: str) -> Tuple[str, str]:
    """
    Obtiene (código de evento, número) desde el nombre del archivo.

    'xml-canc-000123.xml' -> ('canc', '000123'). Si el nombre no sigue el
    patrón se usa ('evento', '').
    """
    code_match = _EVENT_CODE_RE.search(file_name or "")
    number_match = _EVENT_NUMBER_RE.search(file_name or "")
    event_code = code_match.group(1) if code_match else DEFAULT_EVENT_CODE
    numbers = number_match.group(1) if number_match else ""
    return event_code, numbers


def event_name(event_code: str) -> str:
    return EVENT_TYPES.get(event_code, UNKNOWN_EVENT)


def _extract_reference(document) -> DocumentIdentifier:
    root = parse_compact(document)
    element, missing = find_path(root, REFERENCE_PATH)
    if element is None:
        raise MissingReferenceFieldError(
            f"Missing dCdCDERef element in the original XML (falta <{missing}>)"
        )
    value = (element.text or "").strip()
    if not value:
        raise MissingReferenceFieldError("Missing dCdCDERef element in the original XML (vacío)")
    return DocumentIdentifier(value=value)


def _extract_de_id(document) -> DocumentIdentifier:
    root = parse_compact(document)
    if _local_name(root) == "DE":
        de = root
    else:
        de, _ = find_path(root, ("rDE", "DE"))
    de_id = de.get("Id") if de is not None else None
    if not de_id:
        raise MissingIdAttributeError("El elemento DE no tiene atributo Id")
    return DocumentIdentifier(value=de_id.strip())


def extract_identifier(
    document: Union[str, bytes],
    family: DocumentFamily,
    source_name: Optional[str] = None,
) -> DocumentIdentifier:
    """
    Obtiene el identificador de negocio según la familia del documento.

    Args:
        document: XML original o firmado
        family: Familia del documento
        source_name: Nombre del archivo de origen (solo eventos)

    Raises:
        MissingReferenceFieldError: Familia regular sin dCdCDERef
        MissingIdAttributeError: Familia cdc sin atributo Id
        InvalidPayloadError: XML mal formado
    """
    family = DocumentFamily(family)
    if family is DocumentFamily.REGULAR:
        return _extract_reference(document)
    if family is DocumentFamily.CDC:
        return _extract_de_id(document)

    event_code, numbers = parse_event_filename(source_name or "")
    return DocumentIdentifier(value=numbers, event_code=event_code, event_name=event_name(event_code))
