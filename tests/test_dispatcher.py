"""
Tests del pipeline completo sin HTTP (backend de firma simulado)
"""
from datetime import datetime, timedelta, timezone

import pytest

from firmador.firma.backends import SigningBackend
from firmador.firma.dispatcher import SigningDispatcher, SigningRequest, Stage
from firmador.firma.exceptions import (
    ArtifactAlreadyExistsError,
    CertificateExpiredError,
    DecryptionError,
    MissingReferenceFieldError,
    NotFoundError,
    SigningFailedError,
)
from firmador.firma.identifier import DocumentFamily
from firmador.firma.storage import ArtifactStore
from tests.helpers import DE_ID, DE_WITH_ID_XML, EVENT_XML, REGULAR_XML


class FakeBackend(SigningBackend):
    name = "fake"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def sign(self, document, container_path, passphrase):
        self.calls.append((document, container_path, passphrase))
        if self.fail:
            raise SigningFailedError("Error signing XML: firmador no disponible")
        return f"<firmado>{len(self.calls)}</firmado>"


@pytest.fixture
def regular_backend():
    return FakeBackend()


@pytest.fixture
def event_backend():
    return FakeBackend()


@pytest.fixture
def dispatcher(output_dir, pipeline_logger, regular_backend, event_backend):
    return SigningDispatcher(
        store=ArtifactStore(output_dir, logger=pipeline_logger),
        backends={
            DocumentFamily.REGULAR: regular_backend,
            DocumentFamily.CDC: regular_backend,
            DocumentFamily.EVENTO: event_backend,
        },
        logger=pipeline_logger,
    )


def _request(valid_p12, document=REGULAR_XML, family=DocumentFamily.REGULAR, source_name=None):
    cert_path, password = valid_p12
    return SigningRequest(
        document=document,
        container_path=cert_path,
        passphrase=password,
        family=family,
        source_name=source_name,
    )


def test_regular_document(dispatcher, valid_p12, output_dir, regular_backend, event_backend):
    artifact = dispatcher.dispatch(_request(valid_p12))

    assert artifact.filename == "signed-00042.xml"
    assert (output_dir / "signed-00042.xml").read_bytes() == artifact.content
    assert artifact.content == b"<firmado>1</firmado>"
    assert artifact.cert_info["subject"]
    assert len(regular_backend.calls) == 1
    assert event_backend.calls == []


def test_response_echoes_written_bytes(dispatcher, valid_p12, output_dir):
    response = dispatcher.dispatch(_request(valid_p12)).to_response()

    assert response["filename"] == "signed-00042.xml"
    assert response["xml"].encode("utf-8") == (output_dir / response["filename"]).read_bytes()
    assert set(response["certInfo"]) >= {"subject", "issuer", "validFrom", "validTo"}


def test_cdc_document(dispatcher, valid_p12):
    artifact = dispatcher.dispatch(_request(valid_p12, DE_WITH_ID_XML, DocumentFamily.CDC))
    assert artifact.filename == f"signed-{DE_ID}.xml"


def test_event_uses_event_backend(dispatcher, valid_p12, event_backend, regular_backend):
    artifact = dispatcher.dispatch(
        _request(valid_p12, EVENT_XML, DocumentFamily.EVENTO, "xml-canc-000123.xml")
    )

    assert artifact.filename == "signed-canc-000123.xml"
    assert artifact.identifier.event_name == "cancelacion"
    assert len(event_backend.calls) == 1
    assert regular_backend.calls == []


def test_duplicate_identifier(dispatcher, valid_p12, output_dir):
    dispatcher.dispatch(_request(valid_p12))
    original = (output_dir / "signed-00042.xml").read_bytes()

    with pytest.raises(ArtifactAlreadyExistsError) as exc_info:
        dispatcher.dispatch(_request(valid_p12))

    assert exc_info.value.stage == Stage.IDENTIFIER_EXTRACTED.value
    assert (output_dir / "signed-00042.xml").read_bytes() == original


def test_expired_certificate_writes_nothing(dispatcher, expired_p12, output_dir, regular_backend):
    with pytest.raises(CertificateExpiredError) as exc_info:
        dispatcher.dispatch(_request(expired_p12))

    assert exc_info.value.stage == Stage.CERTIFICATE_LOADED.value
    assert regular_backend.calls == []
    assert list(output_dir.glob("*.xml")) == []


def test_clock_is_used_for_validity(output_dir, pipeline_logger, valid_p12, regular_backend):
    dispatcher = SigningDispatcher(
        store=ArtifactStore(output_dir, logger=pipeline_logger),
        backends={DocumentFamily.REGULAR: regular_backend},
        logger=pipeline_logger,
        clock=lambda: datetime.now(timezone.utc) + timedelta(days=3650),
    )

    with pytest.raises(CertificateExpiredError):
        dispatcher.dispatch(_request(valid_p12))


def test_missing_certificate(dispatcher):
    request = SigningRequest(document=REGULAR_XML, container_path="/no/existe.p12", passphrase="x")

    with pytest.raises(NotFoundError) as exc_info:
        dispatcher.dispatch(request)

    assert exc_info.value.stage == Stage.RECEIVED.value


def test_wrong_password(dispatcher, valid_p12):
    cert_path, _ = valid_p12
    request = SigningRequest(document=REGULAR_XML, container_path=cert_path, passphrase="mala")

    with pytest.raises(DecryptionError):
        dispatcher.dispatch(request)


def test_signing_failure_writes_nothing(output_dir, pipeline_logger, valid_p12):
    dispatcher = SigningDispatcher(
        store=ArtifactStore(output_dir, logger=pipeline_logger),
        backends={DocumentFamily.REGULAR: FakeBackend(fail=True)},
        logger=pipeline_logger,
    )

    with pytest.raises(SigningFailedError) as exc_info:
        dispatcher.dispatch(_request(valid_p12))

    assert exc_info.value.stage == Stage.VALIDITY_CHECKED.value
    assert not output_dir.exists() or list(output_dir.iterdir()) == []


def test_missing_reference_after_signing(dispatcher, valid_p12, output_dir, regular_backend):
    with pytest.raises(MissingReferenceFieldError) as exc_info:
        dispatcher.dispatch(_request(valid_p12, "<rDE><DE/></rDE>"))

    assert exc_info.value.stage == Stage.SIGNED.value
    assert len(regular_backend.calls) == 1
    assert list(output_dir.glob("*.xml")) == []


def test_errors_go_to_error_channel(dispatcher, expired_p12, tmp_path, pipeline_logger):
    with pytest.raises(CertificateExpiredError):
        dispatcher.dispatch(_request(expired_p12))

    for handler in pipeline_logger.error_logger.handlers:
        handler.flush()
    error_log = (tmp_path / "logs" / "errorLogger.log").read_text(encoding="utf-8")
    assert "has passed" in error_log
    assert "certificate_loaded" in error_log


def test_request_repr_hides_password(valid_p12):
    assert "test_password" not in repr(_request(valid_p12))


def test_event_without_registered_backend(output_dir, pipeline_logger, valid_p12, regular_backend):
    dispatcher = SigningDispatcher(
        store=ArtifactStore(output_dir, logger=pipeline_logger),
        backends={DocumentFamily.REGULAR: regular_backend},
        logger=pipeline_logger,
    )

    with pytest.raises(SigningFailedError, match="evento") as exc_info:
        dispatcher.dispatch(_request(valid_p12, EVENT_XML, DocumentFamily.EVENTO, "xml-canc-1.xml"))

    assert exc_info.value.stage == Stage.RECEIVED.value
    assert regular_backend.calls == []
    assert not output_dir.exists() or list(output_dir.iterdir()) == []


def test_failure_logged_once_with_stage(dispatcher, expired_p12, caplog):
    with caplog.at_level("INFO"):
        with pytest.raises(CertificateExpiredError):
            dispatcher.dispatch(_request(expired_p12))

    errors = [r for r in caplog.records if r.levelname == "ERROR"]
    assert len(errors) == 1
    message = errors[0].getMessage()
    assert "Operation failed: firma" in message
    assert '"stage": "certificate_loaded"' in message
    assert '"kind": "CertificateExpired"' in message


def test_stages_follow_pipeline_order():
    assert [s.value for s in Stage] == [
        "received",
        "certificate_loaded",
        "validity_checked",
        "signed",
        "identifier_extracted",
        "persisted",
        "responded",
    ]
