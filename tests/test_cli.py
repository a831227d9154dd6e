"""
Tests for the walletpass command line.
"""
import json
import shutil

import pytest

from conftest import KEY_PASSWORD
from walletpass.cli import main

requires_openssl = pytest.mark.skipif(shutil.which("openssl") is None, reason="openssl binary not available")


@pytest.fixture
def fields_file(tmp_path):
    path = tmp_path / "fields.json"
    path.write_text(json.dumps({"serialNumber": "CLI-1", "description": "Spring sale"}))
    return path


def test_build_and_inspect(template_dir, fields_file, tmp_path, capsys):
    out = tmp_path / "cli.pkpass"

    assert main(["build", str(template_dir), "--fields", str(fields_file), "--out", str(out),
                 "--key-password", KEY_PASSWORD]) == 0
    assert f"Wrote {out}" in capsys.readouterr().out
    assert out.stat().st_size > 0

    assert main(["inspect", str(out)]) == 0
    output = capsys.readouterr().out
    assert "pass.json" in output
    assert "fr.lproj/pass.strings" in output
    assert "Bundle OK" in output


def test_build_with_certificate_override(template_dir, fields_file, ec_signer_files, tmp_path, capsys):
    cert_path, key_path = ec_signer_files
    out = tmp_path / "ec.pkpass"

    assert main(["build", str(template_dir), "--fields", str(fields_file), "--out", str(out),
                 "--cert", str(cert_path), "--key", str(key_path), "--key-password", KEY_PASSWORD]) == 0
    capsys.readouterr()

    assert main(["inspect", str(out)]) == 0
    assert "CN=Pass Type ID: pass.com.example.ec" in capsys.readouterr().out


def test_build_validation_error(template_dir, tmp_path, capsys):
    out = tmp_path / "invalid.pkpass"
    assert main(["build", str(template_dir), "--out", str(out), "--key-password", KEY_PASSWORD]) == 1
    assert "Missing field description" in capsys.readouterr().err
    assert not out.exists()


def test_build_unreadable_fields_file(template_dir, tmp_path, capsys):
    assert main(["build", str(template_dir), "--fields", str(tmp_path / "missing.json"),
                 "--out", str(tmp_path / "x.pkpass"), "--key-password", KEY_PASSWORD]) == 1
    assert "Cannot read fields file" in capsys.readouterr().err


def test_inspect_reports_problems(tmp_path, capsys):
    bad = tmp_path / "bad.pkpass"
    bad.write_bytes(b"not a zip")
    assert main(["inspect", str(bad)]) == 1
    assert "ERROR: Not a pass bundle" in capsys.readouterr().err


@requires_openssl
def test_openssl_backend_and_verify(template_dir, fields_file, tmp_path, capsys):
    out = tmp_path / "openssl.pkpass"
    assert main(["build", str(template_dir), "--fields", str(fields_file), "--out", str(out),
                 "--key-password", KEY_PASSWORD, "--backend", "openssl"]) == 0
    assert main(["inspect", str(out), "--verify"]) == 0
    assert "OpenSSL verification: OK" in capsys.readouterr().out
