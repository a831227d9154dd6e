"""
Pass images.

Images are registered per (type, density, language) so every archive path is
produced at most once:

    icon.png, icon@2x.png, logo@3x.png, fr.lproj/logo.png, ...

Dimensions are checked with Pillow when an image is registered. Only the
image header is read for files on disk; content is read and hashed when the
bundle is assembled.
"""
import logging
import os
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from walletpass.core.constants import DENSITIES, IMAGES
from walletpass.core.errors import PassIOError, PassValidationError
from walletpass.services.hashing import Source
from walletpass.utils.locale import is_valid_locale, normalize_locale

logger = logging.getLogger(__name__)

_IMAGE_NAME_RE = re.compile(r"^(?P<type>[a-z]+)(@(?P<density>[23]x))?$")

ImageKey = Tuple[str, str, Optional[str]]


def image_archive_path(image_type: str, density: str = "1x", lang: Optional[str] = None) -> str:
    """`[{lang}.lproj/]{type}[@{density}].png`; the 1x density has no suffix."""
    name = image_type if density == "1x" else f"{image_type}@{density}"
    prefix = f"{lang}.lproj/" if lang else ""
    return f"{prefix}{name}.png"


@dataclass(frozen=True)
class ImageVariant:
    """One image file of a pass."""
    image_type: str
    density: str
    lang: Optional[str]
    source: Source

    @property
    def archive_path(self) -> str:
        return image_archive_path(self.image_type, self.density, self.lang)


def _density_multiplier(density: str) -> int:
    return int(density[0])


def validate_image_dimensions(
    source: Source,
    image_type: str,
    density: str = "1x",
    name: Optional[str] = None,
) -> Tuple[int, int]:
    """
    Check that an image is a PNG within the size limits of its type.

    The icon must be exactly 29x29 points, every other type must fit within
    its width x height at the given density.

    Returns:
        (width, height) in pixels

    Raises:
        PassValidationError: Not a PNG, or dimensions out of range
        PassIOError: The file cannot be opened
    """
    name = name or image_archive_path(image_type, density)
    limits = IMAGES[image_type]
    multiplier = _density_multiplier(density)
    max_width = limits["width"] * multiplier
    max_height = limits["height"] * multiplier

    fp = BytesIO(bytes(source)) if isinstance(source, (bytes, bytearray, memoryview)) else source
    try:
        with Image.open(fp) as img:
            image_format = img.format
            width, height = img.size
    except UnidentifiedImageError as e:
        raise PassValidationError(f"File {name} is not a PNG image") from e
    except OSError as e:
        raise PassIOError(f"Cannot open image {name}: {e.strerror or e}", str(source)) from e

    if image_format != "PNG":
        raise PassValidationError(f"File {name} is not PNG (got {image_format})")

    if limits.get("exact"):
        if (width, height) != (max_width, max_height):
            raise PassValidationError(
                f"{image_type} image must be {max_width}x{max_height}px for {density} density, "
                f"got {width}x{height}"
            )
    elif width > max_width or height > max_height:
        raise PassValidationError(
            f"{image_type} image must be no larger than {max_width}x{max_height}px for {density} density, "
            f"got {width}x{height}"
        )
    return width, height


class PassImages:
    """
    Mutable image registry used while configuring a pass.

    Call snapshot() to get the immutable list of variants for one build.
    """

    def __init__(self):
        self._variants: Dict[ImageKey, Source] = {}

    @staticmethod
    def _key(image_type: str, density: str, lang: Optional[str]) -> ImageKey:
        if image_type not in IMAGES:
            raise ValueError(f"Unknown image type: {image_type}")
        if density not in DENSITIES:
            raise ValueError(f'Invalid density for "{image_type}": {density}')
        return image_type, density, normalize_locale(lang) if lang else None

    def add_image(
        self,
        image_type: str,
        source: Source,
        density: str = "1x",
        lang: Optional[str] = None,
        validate: bool = True,
    ) -> "PassImages":
        """
        Register (or replace) an image from bytes or a file path.

        Raises:
            ValueError: Unknown image type or density
            PassValidationError: The image fails dimension checks
        """
        key = self._key(image_type, density, lang)
        if validate:
            validate_image_dimensions(source, image_type, density, image_archive_path(*key))
        if isinstance(source, (bytearray, memoryview)):
            source = bytes(source)
        self._variants[key] = source
        return self

    def get_image(self, image_type: str, density: str = "1x", lang: Optional[str] = None) -> Optional[Source]:
        return self._variants.get(self._key(image_type, density, lang))

    def remove_image(self, image_type: str, density: str = "1x", lang: Optional[str] = None) -> None:
        self._variants.pop(self._key(image_type, density, lang), None)

    def has(self, image_type: str) -> bool:
        """True when at least one variant of the image type is registered."""
        return any(key[0] == image_type for key in self._variants)

    def __len__(self) -> int:
        return len(self._variants)

    def copy(self) -> "PassImages":
        clone = PassImages()
        clone._variants = dict(self._variants)
        return clone

    def update(self, other: "PassImages") -> "PassImages":
        """Add every variant of other, overriding ours on the same key."""
        self._variants.update(other._variants)
        return self

    def snapshot(self) -> Tuple[ImageVariant, ...]:
        return tuple(
            ImageVariant(image_type=image_type, density=density, lang=lang, source=source)
            for (image_type, density, lang), source in self._variants.items()
        )

    def _load_folder(self, folder: Path, lang: Optional[str]) -> None:
        for file_path in sorted(folder.iterdir()):
            if not file_path.is_file() or file_path.suffix != ".png":
                continue
            match = _IMAGE_NAME_RE.match(file_path.stem)
            if not match or match.group("type") not in IMAGES:
                continue
            self.add_image(
                match.group("type"),
                str(file_path),
                density=match.group("density") or "1x",
                lang=lang,
            )

    def load_from_directory(self, dir_path: Union[str, os.PathLike]) -> "PassImages":
        """
        Load all supported PNG images from a directory and its `*.lproj`
        subfolders. Other files are ignored.

        Raises:
            PassIOError: If dir_path is not a directory
            PassValidationError: If an image has invalid dimensions
        """
        folder = Path(dir_path).resolve()
        if not folder.is_dir():
            raise PassIOError(f"Path {folder} must be a directory!", str(folder))

        self._load_folder(folder, None)
        for lproj in sorted(folder.glob("*.lproj")):
            language = lproj.name[: -len(".lproj")]
            if lproj.is_dir() and is_valid_locale(language):
                self._load_folder(lproj, language)

        logger.debug("Loaded %d images from %s", len(self._variants), folder)
        return self
