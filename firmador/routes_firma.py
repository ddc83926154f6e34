"""
Rutas HTTP del firmador

POST /, /firmar   XML crudo (application/xml, text/xml) o JSON
POST /regular     JSON {xml, certPath, password}
POST /evento      JSON {xmlFilePath, certPath, password} o {xml, fileName, ...}
POST /cdc         igual que /regular, nombre por atributo Id del DE
POST /archivo     JSON {xmlFilePath, certPath, password, family?}
"""
import json
from pathlib import Path
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from .config import FirmadorConfig
from .firma.dispatcher import SigningDispatcher, SigningRequest
from .firma.exceptions import InvalidPayloadError, NotFoundError, UnsupportedContentTypeError
from .firma.identifier import DocumentFamily

XML_CONTENT_TYPES = ("application/xml", "text/xml")
JSON_CONTENT_TYPE = "application/json"


class SigningPayload(BaseModel):
    xml: Optional[str] = None
    xmlString: Optional[str] = None
    xmlFilePath: Optional[str] = None
    fileName: Optional[str] = None
    certPath: Optional[str] = None
    password: Optional[str] = None
    family: Optional[DocumentFamily] = None


def _content_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";")[0].strip().lower()


def parse_json_payload(body: bytes) -> SigningPayload:
    try:
        data = json.loads(body.decode("utf-8") or "null")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidPayloadError(f"Invalid JSON body: {e}") from e
    if not isinstance(data, dict):
        raise InvalidPayloadError("Invalid JSON body: se esperaba un objeto")
    try:
        return SigningPayload(**data)
    except ValidationError as e:
        raise InvalidPayloadError(f"Invalid JSON body: {e.errors()}") from e


def build_signing_request(
    payload: SigningPayload,
    family: DocumentFamily,
    config: FirmadorConfig,
) -> SigningRequest:
    """Resuelve documento, certificado y contraseña de la solicitud"""
    source_name = payload.fileName
    if payload.xmlFilePath:
        xml_file = Path(payload.xmlFilePath)
        if not xml_file.is_file():
            raise NotFoundError(
                f"Invalid xmlFilePath: {payload.xmlFilePath} - XML file does not exist"
            )
        try:
            document = xml_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InvalidPayloadError(f"No se pudo leer el XML {xml_file.name}: {e}") from e
        source_name = source_name or xml_file.name
    else:
        document = payload.xml or payload.xmlString

    if not document or not document.strip():
        raise InvalidPayloadError("Falta el XML a firmar (xml, xmlString o xmlFilePath)")

    cert_path = payload.certPath or config.cert_path
    password = payload.password if payload.password is not None else config.cert_password
    if not cert_path:
        raise InvalidPayloadError("Falta certPath y no hay certificado configurado")

    return SigningRequest(
        document=document,
        container_path=cert_path,
        passphrase=password or "",
        family=family,
        source_name=source_name,
    )


def register_firma_routes(app, dispatcher: SigningDispatcher, config: FirmadorConfig):
    """Registra las rutas de firma en la app"""

    async def _sign(request: SigningRequest) -> JSONResponse:
        artifact = await run_in_threadpool(dispatcher.dispatch, request)
        return JSONResponse(status_code=200, content=artifact.to_response())

    async def _read_json(request: Request) -> SigningPayload:
        if _content_type(request) != JSON_CONTENT_TYPE:
            raise UnsupportedContentTypeError("Unsupported Content-Type, expected application/json")
        return parse_json_payload(await request.body())

    async def _xml_or_json(request: Request, family: DocumentFamily) -> JSONResponse:
        content_type = _content_type(request)
        body = await request.body()
        if content_type in XML_CONTENT_TYPES:
            try:
                xml_string = body.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidPayloadError(f"El XML debe estar codificado en UTF-8: {e}") from e
            payload = SigningPayload(xml=xml_string)
        elif content_type == JSON_CONTENT_TYPE:
            payload = parse_json_payload(body)
        else:
            raise UnsupportedContentTypeError(
                "Unsupported Content-Type, expected application/xml or text/xml"
            )
        return await _sign(build_signing_request(payload, family, config))

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.post("/")
    async def firmar_root(request: Request):
        return await _xml_or_json(request, DocumentFamily.REGULAR)

    @app.post("/firmar")
    async def firmar(request: Request):
        return await _xml_or_json(request, DocumentFamily.REGULAR)

    @app.post("/regular")
    async def firmar_regular(request: Request):
        payload = await _read_json(request)
        return await _sign(build_signing_request(payload, DocumentFamily.REGULAR, config))

    @app.post("/cdc")
    async def firmar_cdc(request: Request):
        return await _xml_or_json(request, DocumentFamily.CDC)

    @app.post("/evento")
    async def firmar_evento(request: Request):
        payload = await _read_json(request)
        return await _sign(build_signing_request(payload, DocumentFamily.EVENTO, config))

    @app.post("/archivo")
    async def firmar_archivo(request: Request):
        payload = await _read_json(request)
        if not payload.xmlFilePath:
            raise InvalidPayloadError("Falta xmlFilePath")
        family = payload.family or DocumentFamily.REGULAR
        return await _sign(build_signing_request(payload, family, config))
