"""
Tests for pass.strings encoding and localization loading.
"""
import pytest

from walletpass.core.errors import PassIOError
from walletpass.services.localizations import Localizations, get_strings_buffer, read_strings, read_strings_file
from walletpass.utils.locale import is_valid_locale, normalize_locale


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("en", "en"),
        ("EN_us", "en-US"),
        ("zh_hant_tw", "zh-Hant-TW"),
        ("es-419", "es-419"),
    ],
)
def test_normalize_locale(raw, expected):
    assert normalize_locale(raw) == expected


def test_invalid_locale():
    assert not is_valid_locale("english!")
    with pytest.raises(ValueError):
        normalize_locale("english!")


def test_strings_buffer_is_utf16le_with_bom():
    data = get_strings_buffer({"Offer": "Offre"})
    assert data.startswith(b"\xff\xfe")
    assert data.decode("utf-16-le") == '\ufeff"Offer" = "Offre";'


def test_strings_escaping_round_trip():
    strings = {'say "hi"': 'line one\nline two', "path": "C:\\temp", "ünï": "cödé"}
    assert read_strings(get_strings_buffer(strings)) == strings


def test_read_strings_skips_comments_and_accepts_utf8():
    data = (
        "/* Header\n"
        "   comment */\n"
        "// single line\n"
        '"a" = "b";\n'
        "garbage line\n"
        '"c"="d" ;\n'
    ).encode("utf-8")
    assert read_strings(data) == {"a": "b", "c": "d"}


def test_read_strings_file_missing(tmp_path):
    with pytest.raises(PassIOError):
        read_strings_file(tmp_path / "missing.strings")


def test_localizations_entries():
    localizations = Localizations().add("pt_BR", {"a": "b"}).add("fr", {"x": "y"})
    localizations.add("fr", {"z": "w"})

    assert "pt-BR" in localizations
    assert "pt_br" in localizations
    assert "not a locale!" not in localizations
    assert localizations.get("fr") == {"x": "y", "z": "w"}
    assert [path for path, _ in localizations.to_entries()] == ["pt-BR.lproj/pass.strings", "fr.lproj/pass.strings"]


def test_copy_is_independent():
    original = Localizations({"de": {"a": "b"}})
    clone = original.copy()
    clone.add("de", {"c": "d"})
    assert original.get("de") == {"a": "b"}


def test_load_from_folder(template_dir, caplog):
    bad = template_dir / "not a locale.lproj"
    bad.mkdir()
    (bad / "pass.strings").write_bytes(get_strings_buffer({"a": "b"}))

    localizations = Localizations().load(template_dir)

    assert list(localizations) == ["fr"]
    assert localizations.get("fr") == {"Offer": "Offre"}
    assert "does not look like a language/locale code" in caplog.text
