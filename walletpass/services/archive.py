"""
ZIP archive writer for pass bundles.
"""
import logging
import zipfile
from io import BytesIO
from typing import Iterable, Tuple

from walletpass.core.constants import MANIFEST_JSON, SIGNATURE
from walletpass.core.errors import PassArchiveError

logger = logging.getLogger(__name__)

# (archive path, bytes, compress?)
ArchiveEntry = Tuple[str, bytes, bool]

# manifest.json and signature are always stored as-is
STORED_ENTRIES = frozenset({MANIFEST_JSON, SIGNATURE})


def write_archive(entries: Iterable[ArchiveEntry]) -> bytes:
    """
    Write entries into an in-memory ZIP archive and return its bytes.

    Raises:
        PassArchiveError: If any entry cannot be written
    """
    bundle = BytesIO()
    try:
        with zipfile.ZipFile(bundle, "w") as zf:
            for path, data, compress in entries:
                compression = zipfile.ZIP_DEFLATED if compress and path not in STORED_ENTRIES else zipfile.ZIP_STORED
                zf.writestr(path, data, compress_type=compression)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        logger.error(f"Failed to write pass archive: {e}")
        raise PassArchiveError(f"Failed to write pass archive: {e}") from e
    return bundle.getvalue()
