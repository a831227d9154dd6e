"""
Tests for bundle inspection.
"""
import json
import zipfile
from io import BytesIO

import pytest

from walletpass.core.errors import PassArchiveError
from walletpass.services.archive import write_archive
from walletpass.services.bundle import assemble
from walletpass.services.verify import inspect_bundle


def _rewrite(bundle: bytes, **replace) -> bytes:
    with zipfile.ZipFile(BytesIO(bundle)) as zf:
        entries = [(name, replace.get(name, zf.read(name)), False) for name in zf.namelist()]
    return write_archive(entries)


@pytest.fixture
def bundle(descriptor_fields, images, credentials):
    return assemble(descriptor_fields, images, None, credentials)


def test_valid_bundle(bundle, credentials):
    report = inspect_bundle(bundle)
    assert report.ok
    assert credentials.certificate.subject.rfc4514_string() in report.signature.subjects
    assert set(report.manifest) == {"pass.json", "icon.png", "logo.png"}


def test_tampered_entry_is_reported(bundle):
    tampered = _rewrite(bundle, **{"pass.json": b'{"serialNumber": "evil"}'})
    report = inspect_bundle(tampered)
    assert report.errors == ["Hash mismatch for pass.json"]


def test_tampered_manifest_is_reported(bundle):
    with zipfile.ZipFile(BytesIO(bundle)) as zf:
        manifest = json.loads(zf.read("manifest.json"))
    manifest["extra.png"] = "0" * 40
    report = inspect_bundle(_rewrite(bundle, **{"manifest.json": json.dumps(manifest).encode()}))

    assert not report.ok
    assert any("Manifest mismatch" in error for error in report.errors)
    assert "Signed message-digest does not match manifest.json" in report.errors


def test_missing_signature():
    report = inspect_bundle(write_archive([("pass.json", b"{}", False)]))
    assert report.errors == ["Missing required files: manifest.json, signature"]


def test_broken_signature(bundle):
    report = inspect_bundle(_rewrite(bundle, signature=b"\x00\x01"))
    assert len(report.errors) == 1
    assert "not a DER encoded CMS SignedData" in report.errors[0]


def test_not_a_zip():
    with pytest.raises(PassArchiveError):
        inspect_bundle(b"not a zip")
