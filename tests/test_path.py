"""
Tests for archive name and preview path helpers.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from map_cache.utils.path import get_map_images, map_key, preview_images


class TestMapKey:
    """Test deriving cache keys from archive names."""

    @pytest.mark.parametrize(
        ("file_name", "expected"),
        [
            ("Comet Catcher Redux.sd7", "Comet Catcher Redux"),
            ("foo.SDZ", "foo"),
            ("quicksilver_1.1.sd7", "quicksilver_1.1"),
            ("quicksilver_1.1", "quicksilver_1.1"),
            ("plain", "plain"),
        ],
    )
    def test_strips_only_archive_extensions(
        self, file_name: str, expected: str
    ) -> None:
        assert map_key(file_name) == expected

    def test_stored_key_maps_to_itself(self) -> None:
        key = map_key("dsd_v8.0.sdz")
        assert map_key(key) == key


class TestPreviewPaths:
    """Test the four preview image paths."""

    def test_archive_name_and_key_agree(self, temp_dir: Path) -> None:
        from_archive = get_map_images(temp_dir, "quicksilver_1.1.sd7")
        from_key = preview_images(temp_dir, "quicksilver_1.1")

        assert from_archive == from_key
        assert from_key.texture == temp_dir / "quicksilver_1.1-texture.jpg"
