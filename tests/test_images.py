"""
Tests for image registration, dimension checks and folder loading.
"""
from io import BytesIO

import pytest
from PIL import Image

from conftest import png_bytes
from walletpass.core.errors import PassIOError, PassValidationError
from walletpass.services.images import PassImages, image_archive_path, validate_image_dimensions


@pytest.mark.parametrize(
    "args,expected",
    [
        (("icon",), "icon.png"),
        (("icon", "2x"), "icon@2x.png"),
        (("logo", "3x", "fr"), "fr.lproj/logo@3x.png"),
        (("strip", "1x", "zh-Hant"), "zh-Hant.lproj/strip.png"),
    ],
)
def test_archive_path(args, expected):
    assert image_archive_path(*args) == expected


def test_icon_must_be_exact_size():
    assert validate_image_dimensions(png_bytes(29, 29), "icon") == (29, 29)
    assert validate_image_dimensions(png_bytes(87, 87), "icon", "3x") == (87, 87)
    with pytest.raises(PassValidationError, match="icon image must be 29x29px"):
        validate_image_dimensions(png_bytes(28, 29), "icon")


def test_other_images_are_upper_bounds():
    assert validate_image_dimensions(png_bytes(100, 30), "logo") == (100, 30)
    assert validate_image_dimensions(png_bytes(320, 100), "logo", "2x") == (320, 100)
    with pytest.raises(PassValidationError, match="no larger than 160x50px"):
        validate_image_dimensions(png_bytes(161, 50), "logo")


def test_non_png_is_rejected():
    buf = BytesIO()
    Image.new("RGB", (29, 29)).save(buf, format="JPEG")
    with pytest.raises(PassValidationError, match="not PNG"):
        validate_image_dimensions(buf.getvalue(), "icon")
    with pytest.raises(PassValidationError, match="not a PNG image"):
        validate_image_dimensions(b"plain text", "icon")


def test_missing_image_file(tmp_path):
    with pytest.raises(PassIOError):
        validate_image_dimensions(str(tmp_path / "icon.png"), "icon")


def test_add_image_rejects_unknown_type_and_density(icon_png):
    images = PassImages()
    with pytest.raises(ValueError, match="Unknown image type"):
        images.add_image("banner", icon_png)
    with pytest.raises(ValueError, match="Invalid density"):
        images.add_image("icon", icon_png, density="4x")
    assert len(images) == 0


def test_add_get_remove(icon_png):
    images = PassImages().add_image("icon", icon_png, lang="FR")
    assert images.get_image("icon", lang="fr") == icon_png
    assert images.get_image("icon") is None
    assert images.has("icon")

    images.remove_image("icon", lang="fr")
    assert not images.has("icon")


def test_copy_and_snapshot_are_independent(images, icon_png):
    clone = images.copy()
    clone.add_image("icon", png_bytes(58, 58), density="2x")
    assert len(images) == 2
    assert len(clone) == 3

    snapshot = images.snapshot()
    images.remove_image("logo")
    assert sorted(v.archive_path for v in snapshot) == ["icon.png", "logo.png"]


def test_load_from_directory(template_dir):
    images = PassImages().load_from_directory(template_dir)
    paths = sorted(v.archive_path for v in images.snapshot())
    assert paths == ["fr.lproj/logo.png", "icon.png", "icon@2x.png", "logo.png", "logo@2x.png"]
    # loaded lazily from disk
    assert str(images.get_image("icon")).endswith("icon.png")


def test_load_from_directory_rejects_oversized_image(tmp_path):
    (tmp_path / "thumbnail.png").write_bytes(png_bytes(91, 90))
    with pytest.raises(PassValidationError, match="thumbnail"):
        PassImages().load_from_directory(tmp_path)


def test_load_from_missing_directory(tmp_path):
    with pytest.raises(PassIOError, match="must be a directory"):
        PassImages().load_from_directory(tmp_path / "nope")
