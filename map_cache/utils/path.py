"""
Utilities for handling map file names, preview paths and directories.
"""

from pathlib import Path

from pathvalidate import sanitize_filename

from map_cache.models.map_data import MapImages

PARTIAL_SUFFIX = ".part"
ARCHIVE_SUFFIXES = (".sd7", ".sdz")
IMAGE_KINDS = ("texture", "height", "metal", "type")


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def map_key(file_name: str) -> str:
    """
    Returns the cache key for an archive: its name without the archive
    extension. Other dots are part of the key, so a stored key maps to itself.
    `"Comet Catcher Redux.sd7"` -> `"Comet Catcher Redux"`,
    `"quicksilver_1.1"` -> `"quicksilver_1.1"`.
    """
    path = Path(file_name)
    if path.suffix.lower() in ARCHIVE_SUFFIXES:
        return path.stem
    return path.name


def safe_archive_name(file_name: str) -> str:
    """
    Sanitizes a remote file name so it can only ever land directly inside the
    maps directory.
    """
    cleaned = sanitize_filename(Path(file_name).name, platform="auto")
    if not cleaned:
        raise ValueError(f"Unusable archive file name: {file_name!r}")
    return cleaned


def partial_path(destination: Path) -> Path:
    """Temporary location used while an archive is still being downloaded."""
    return destination.with_name(destination.name + PARTIAL_SUFFIX)


def is_archive_candidate(path: Path) -> bool:
    """True for files a directory scan should consider for caching."""
    return (
        path.is_file()
        and not path.name.startswith(".")
        and not path.name.endswith(PARTIAL_SUFFIX)
    )


def preview_images(images_dir: Path, key: str) -> MapImages:
    """Builds the preview image paths for a cache key, used as-is."""
    paths = {kind: images_dir / f"{key}-{kind}.jpg" for kind in IMAGE_KINDS}
    return MapImages(**paths)


def get_map_images(images_dir: Path, file_name: str) -> MapImages:
    """Builds the preview image paths for an archive name, with or without extension."""
    return preview_images(images_dir, map_key(file_name))
