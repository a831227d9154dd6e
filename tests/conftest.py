"""
Pytest configuration and fixtures for walletpass tests.

Provides throwaway signing material (a CA standing in for the WWDR
intermediate, a signer certificate and an encrypted private key), PNG images
and a template folder.
"""
import json
import pathlib
import sys
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID
from PIL import Image

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from walletpass.services.credentials import SigningCredentials  # noqa: E402
from walletpass.services.images import PassImages  # noqa: E402

KEY_PASSWORD = "correct horse battery staple"
PASS_TYPE_IDENTIFIER = "pass.com.example.passbook"


def make_name(common_name: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Walletpass Test"),
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
    ])


def make_certificate(subject: x509.Name, issuer: x509.Name, public_key, signing_key, is_ca: bool = False):
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .sign(signing_key, hashes.SHA256())
    )


def png_bytes(width: int, height: int, color=(30, 64, 175, 255)) -> bytes:
    img = Image.new("RGBA", (width, height), color=color)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture(scope="session")
def ca():
    """Self-signed CA used as the intermediate embedded in signatures."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = make_name("Test Worldwide Developer Relations")
    cert = make_certificate(name, name, key.public_key(), key, is_ca=True)
    return cert, key


@pytest.fixture(scope="session")
def signer(ca):
    ca_cert, ca_key = ca
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = make_certificate(make_name(f"Pass Type ID: {PASS_TYPE_IDENTIFIER}"), ca_cert.subject, key.public_key(), ca_key)
    return cert, key


@pytest.fixture(scope="session")
def ec_signer(ca):
    ca_cert, ca_key = ca
    key = ec.generate_private_key(ec.SECP256R1())
    cert = make_certificate(make_name("Pass Type ID: pass.com.example.ec"), ca_cert.subject, key.public_key(), ca_key)
    return cert, key


@pytest.fixture(scope="session")
def credentials(signer, ca):
    cert, key = signer
    return SigningCredentials(certificate=cert, private_key=key, wwdr_certificate=ca[0])


@pytest.fixture(scope="session")
def ca_pem(ca) -> bytes:
    return ca[0].public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def signer_cert_pem(signer) -> bytes:
    return signer[0].public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def signer_key_pem(signer) -> bytes:
    """Private key encrypted with KEY_PASSWORD."""
    return signer[1].private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(KEY_PASSWORD.encode()),
    )


@pytest.fixture(scope="session")
def signer_pem(signer_cert_pem, signer_key_pem) -> bytes:
    """Certificate and encrypted key in one PEM, as stored in template folders."""
    return signer_cert_pem + signer_key_pem


@pytest.fixture
def icon_png() -> bytes:
    return png_bytes(29, 29)


@pytest.fixture
def logo_png() -> bytes:
    return png_bytes(160, 50)


@pytest.fixture
def images(icon_png, logo_png) -> PassImages:
    return PassImages().add_image("icon", icon_png).add_image("logo", logo_png)


@pytest.fixture
def descriptor_fields() -> dict:
    return {
        "serialNumber": "123456",
        "organizationName": "Acme flowers",
        "description": "20% of black roses",
        "passTypeIdentifier": PASS_TYPE_IDENTIFIER,
        "teamIdentifier": "MXL",
    }


@pytest.fixture
def template_dir(tmp_path, signer_pem, icon_png, logo_png):
    """
    Template folder with a coupon pass.json, icon/logo images (1x and 2x),
    a French localization and the signer PEM.
    """
    folder = tmp_path / "Coupon.pass"
    folder.mkdir()
    (folder / "pass.json").write_text(json.dumps({
        "formatVersion": 1,
        "passTypeIdentifier": PASS_TYPE_IDENTIFIER,
        "teamIdentifier": "MXL",
        "organizationName": "Acme flowers",
        "backgroundColor": "#ff0000",
        "coupon": {
            "primaryFields": [{"key": "offer", "label": "Offer", "value": "20%"}],
        },
    }))
    (folder / "icon.png").write_bytes(icon_png)
    (folder / "icon@2x.png").write_bytes(png_bytes(58, 58))
    (folder / "logo.png").write_bytes(logo_png)
    (folder / "logo@2x.png").write_bytes(png_bytes(320, 100))
    (folder / "notes.txt").write_text("not an image")

    lproj = folder / "fr.lproj"
    lproj.mkdir()
    (lproj / "pass.strings").write_bytes('\ufeff"Offer" = "Offre";'.encode("utf-16-le"))
    (lproj / "logo.png").write_bytes(png_bytes(150, 40))

    (folder / "com.example.passbook.pem").write_bytes(signer_pem)
    return folder


@pytest.fixture
def ec_signer_files(tmp_path, ec_signer):
    """EC signer certificate and encrypted key written to separate PEM files."""
    cert, key = ec_signer
    cert_path = tmp_path / "ec-cert.pem"
    key_path = tmp_path / "ec-key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(KEY_PASSWORD.encode()),
    ))
    return cert_path, key_path
