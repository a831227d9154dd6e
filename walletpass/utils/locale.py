"""
Locale code normalisation for `{lang}.lproj` folder names.
"""
import re

LOCALE_RE = re.compile(
    r"^(?P<lang>[A-Za-z]{2,4})"
    r"([-_](?P<variant>[A-Za-z]{4}|\d{3}))?"
    r"([-_](?P<country>[A-Za-z]{2}|\d{3}))?$"
)


def normalize_locale(locale: str) -> str:
    """
    Normalise a locale like `zh_hant_tw` to `zh-Hant-TW`.

    Raises:
        ValueError: If the string does not look like a language/locale code
    """
    match = LOCALE_RE.match(locale or "")
    if not match:
        raise ValueError(f"Invalid locale string: {locale}")
    result = match.group("lang").lower()
    if match.group("variant"):
        result += "-" + match.group("variant").capitalize()
    if match.group("country"):
        result += "-" + match.group("country").upper()
    return result


def is_valid_locale(locale: str) -> bool:
    return bool(LOCALE_RE.match(locale or ""))
