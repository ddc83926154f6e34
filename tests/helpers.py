"""
Certificados y documentos de prueba
"""
from datetime import datetime
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs12

P12_PASSWORD = "test_password"

REGULAR_XML = "<rDE><DE><gCamDEAsoc><dCdCDERef>42</dCdCDERef></gCamDEAsoc></DE></rDE>"

DE_ID = "01045547378001001000000112025123011234567892"

DE_WITH_ID_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<rDE xmlns="http://ekuatia.set.gov.py/sifen/xsd">
    <dVerFor>150</dVerFor>
    <DE Id="{DE_ID}">
        <dFeFirma>2025-01-29T10:00:00</dFeFirma>
        <gEmis>
            <dRucEm>4554737</dRucEm>
            <dDVEmi>8</dDVEmi>
        </gEmis>
        <gCamDEAsoc>
            <dCdCDERef>123</dCdCDERef>
        </gCamDEAsoc>
    </DE>
</rDE>"""

EVENT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rEnviEventoDe xmlns="http://ekuatia.set.gov.py/sifen/xsd">
    <dId>1</dId>
    <dEvReg>
        <gGroupGesEve>
            <rGesEve>
                <rEve Id="1">
                    <dFecFirma>2025-01-29T10:00:00</dFecFirma>
                    <dVerFor>150</dVerFor>
                    <gGroupTiEvt>
                        <rGeVeCan>
                            <Id>01045547378001001000000112025123011234567892</Id>
                            <mOtEve>Error en los datos del receptor</mOtEve>
                        </rGeVeCan>
                    </gGroupTiEvt>
                </rEve>
            </rGesEve>
        </gGroupGesEve>
    </dEvReg>
</rEnviEventoDe>"""


def make_certificate(private_key, not_before: datetime, not_after: datetime, common_name: str = "4554737-8"):
    """Certificado autofirmado (solo para testing)"""
    subject = issuer = x509.Name([
        x509.NameAttribute(x509.NameOID.COUNTRY_NAME, "PY"),
        x509.NameAttribute(x509.NameOID.STATE_OR_PROVINCE_NAME, "Asunción"),
        x509.NameAttribute(x509.NameOID.ORGANIZATION_NAME, "Test SIFEN"),
        x509.NameAttribute(x509.NameOID.COMMON_NAME, common_name),
    ])
    return x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        issuer
    ).public_key(
        private_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        not_before
    ).not_valid_after(
        not_after
    ).sign(private_key, hashes.SHA256(), default_backend())


def write_p12(path: Path, key, cert, cas=None, password: str = P12_PASSWORD) -> str:
    """Serializa a PKCS#12 y devuelve la ruta"""
    pfx_data = pkcs12.serialize_key_and_certificates(
        name=b"test_cert",
        key=key,
        cert=cert,
        cas=cas,
        encryption_algorithm=serialization.BestAvailableEncryption(password.encode()),
    )
    path.write_bytes(pfx_data)
    return str(path)
