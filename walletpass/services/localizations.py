"""
Pass localizations.

Each language becomes one `{lang}.lproj/pass.strings` entry, encoded as
UTF-16LE with a byte order mark. Lines look like:

    "key" = "translation";

Double quotes, backslashes and new lines are escaped with a backslash.
"""
import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Tuple, Union

from walletpass.core.constants import STRINGS_FILE
from walletpass.core.errors import PassIOError
from walletpass.utils.locale import is_valid_locale, normalize_locale

logger = logging.getLogger(__name__)

BOM = "﻿"

_LINE_RE = re.compile(r'^"(?P<key>(?:[^"\\]|\\.)+)"\s*=\s*"(?P<value>(?:[^"\\]|\\.)*)"\s*;')
_UNESCAPE_RE = re.compile(r'\\(["\\nrt])')
_UNESCAPES = {'"': '"', "\\": "\\", "n": "\n", "r": "\r", "t": "\t"}


def _escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )


def _unescape(value: str) -> str:
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPES[m.group(1)], value)


def get_strings_buffer(strings: Mapping[str, str]) -> bytes:
    """Encode translations as a UTF-16LE pass.strings file (with BOM)."""
    lines = [f'"{_escape(key)}" = "{_escape(value)}";' for key, value in strings.items()]
    return (BOM + "\n".join(lines)).encode("utf-16-le")


def _decode(data: bytes) -> str:
    if data[:2] in (b"\xff\xfe", b"\xfe\xff"):
        return data.decode("utf-16")
    return data.decode("utf-8-sig")


def read_strings(data: bytes) -> Dict[str, str]:
    """
    Parse pass.strings content (UTF-16 with BOM, or UTF-8).

    Comments and lines that are not `"key" = "value";` pairs are skipped.
    """
    result: Dict[str, str] = {}
    in_comment = False
    for raw_line in _decode(data).splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if in_comment or line.startswith("/*"):
            in_comment = not line.endswith("*/")
            continue
        if line.startswith("//"):
            continue
        match = _LINE_RE.match(line)
        if not match:
            continue
        result[_unescape(match.group("key"))] = _unescape(match.group("value"))
    return result


def read_strings_file(file_path: Union[str, os.PathLike]) -> Dict[str, str]:
    try:
        data = Path(file_path).read_bytes()
    except OSError as e:
        raise PassIOError(f"Cannot read localization file {file_path}: {e.strerror or e}", str(file_path)) from e
    return read_strings(data)


class Localizations:
    """Translations per language: lang -> ordered {key: translation}."""

    def __init__(self, values: Mapping[str, Mapping[str, str]] = None):
        self._strings: Dict[str, Dict[str, str]] = {}
        for lang, strings in (values or {}).items():
            self.add(lang, strings)

    def add(self, lang: str, values: Mapping[str, str]) -> "Localizations":
        """Add (or update) translations for a language. Returns self."""
        lang = normalize_locale(lang)
        self._strings.setdefault(lang, {}).update(values)
        return self

    def get(self, lang: str) -> Dict[str, str]:
        return dict(self._strings.get(normalize_locale(lang), {}))

    def copy(self) -> "Localizations":
        return Localizations(self._strings)

    def __contains__(self, lang: str) -> bool:
        return is_valid_locale(lang) and normalize_locale(lang) in self._strings

    def __iter__(self) -> Iterator[str]:
        return iter(self._strings)

    def __len__(self) -> int:
        return len(self._strings)

    def to_entries(self) -> List[Tuple[str, bytes]]:
        """Return (archive path, bytes) for each language."""
        return [
            (f"{lang}.lproj/{STRINGS_FILE}", get_strings_buffer(strings))
            for lang, strings in self._strings.items()
        ]

    def load(self, dir_path: Union[str, os.PathLike]) -> "Localizations":
        """
        Load every `*.lproj/pass.strings` below dir_path. Folders whose name
        is not a language/locale code are skipped with a warning.
        """
        for strings_path in sorted(Path(dir_path).glob(f"*.lproj/{STRINGS_FILE}")):
            language = strings_path.parent.name[: -len(".lproj")]
            if not is_valid_locale(language):
                logger.warning(
                    'Localization file %s was not loaded because "%s" does not look like a language/locale code',
                    strings_path,
                    language,
                )
                continue
            self.add(language, read_strings_file(strings_path))
        return self
