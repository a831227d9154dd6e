"""
Tests for template folders and passes created from them.
"""
import json
import zipfile
from io import BytesIO

import pytest

from conftest import KEY_PASSWORD, png_bytes
from walletpass.core.errors import PassConfigError, PassCryptoError, PassIOError, PassValidationError
from walletpass.services.template import PassTemplate
from walletpass.services.verify import inspect_bundle


def test_load_template(template_dir, signer):
    template = PassTemplate.load(template_dir, KEY_PASSWORD)

    assert template.style == "coupon"
    assert "formatVersion" not in template.fields
    assert len(template.images) == 5
    assert list(template.localizations) == ["fr"]
    assert template.credentials.certificate == signer[0]


def test_create_and_assemble_pass(template_dir):
    template = PassTemplate.load(template_dir, KEY_PASSWORD)
    pass_ = template.create_pass({"serialNumber": "A-1", "description": "Spring sale"})

    bundle = pass_.assemble()

    report = inspect_bundle(bundle)
    assert report.ok, report.errors
    assert {"fr.lproj/pass.strings", "fr.lproj/logo.png", "icon@2x.png"} <= set(report.files)
    with zipfile.ZipFile(BytesIO(bundle)) as zf:
        pass_json = json.loads(zf.read("pass.json"))
    assert pass_json["serialNumber"] == "A-1"
    assert pass_json["backgroundColor"] == "rgb(255, 0, 0)"
    assert pass_json["coupon"]["primaryFields"][0]["value"] == "20%"
    assert pass_json["formatVersion"] == 1


def test_pass_changes_do_not_leak_into_template(template_dir):
    template = PassTemplate.load(template_dir, KEY_PASSWORD)
    pass_ = template.create_pass({"serialNumber": "A-2"})
    pass_.images.add_image("thumbnail", png_bytes(90, 90))
    pass_.localizations.add("de", {"Offer": "Angebot"})
    pass_.fields["logoText"] = "Acme"

    assert not template.images.has("thumbnail")
    assert "de" not in template.localizations
    assert "logoText" not in template.fields
    assert "serialNumber" not in template.fields


def test_wrong_key_password(template_dir):
    with pytest.raises(PassCryptoError):
        PassTemplate.load(template_dir, "wrong")


def test_template_without_certificate(template_dir):
    (template_dir / "com.example.passbook.pem").unlink()
    template = PassTemplate.load(template_dir)
    assert template.credentials is None

    pass_ = template.create_pass({"serialNumber": "1", "description": "x"})
    with pytest.raises(PassConfigError):
        pass_.assemble()


def test_missing_folder(tmp_path):
    with pytest.raises(PassIOError, match="must be a directory"):
        PassTemplate.load(tmp_path / "missing.pass")


def test_missing_pass_json(tmp_path):
    with pytest.raises(PassIOError):
        PassTemplate.load(tmp_path)


def test_invalid_pass_json(tmp_path):
    (tmp_path / "pass.json").write_text("{not json")
    with pytest.raises(PassValidationError, match="Invalid pass.json"):
        PassTemplate.load(tmp_path)


def test_pass_json_without_style(tmp_path):
    (tmp_path / "pass.json").write_text(json.dumps({"formatVersion": 1}))
    with pytest.raises(PassValidationError, match="Unknown pass style"):
        PassTemplate.load(tmp_path)


def test_unknown_style():
    with pytest.raises(ValueError):
        PassTemplate("ticket")
    assert PassTemplate("generic").fields == {"generic": {}}
