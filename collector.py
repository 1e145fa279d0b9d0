from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from errors import UnsupportedImageError

logger = structlog.get_logger()

ALLOWED_MEDIA_TYPES = ("image/png", "image/jpeg", "image/webp")


@dataclass(frozen=True)
class UploadedImage:
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass(frozen=True)
class ImageAsset:
    filename: str
    media_type: str
    data: bytes
    preview_handle: str

    @property
    def preview_url(self) -> str:
        return f"/previews/{self.preview_handle}"


def resolve_media_type(filename: str, content_type: Optional[str]) -> str:
    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(filename or "")
    return (guessed or "").lower()


class PreviewRegistry:
    """Tracks which preview handles are still live."""

    def __init__(self) -> None:
        self._live: set[str] = set()

    def create(self) -> str:
        handle = uuid.uuid4().hex
        self._live.add(handle)
        return handle

    def revoke(self, handle: str) -> None:
        self._live.remove(handle)

    def is_live(self, handle: str) -> bool:
        return handle in self._live

    def __len__(self) -> int:
        return len(self._live)


class ImageCollector:
    """Holds the current image selection and the preview handles derived from it."""

    def __init__(self, registry: Optional[PreviewRegistry] = None) -> None:
        self._registry = registry if registry is not None else PreviewRegistry()
        self._assets: list[ImageAsset] = []

    @property
    def assets(self) -> tuple[ImageAsset, ...]:
        return tuple(self._assets)

    def __len__(self) -> int:
        return len(self._assets)

    def set_images(self, files: Iterable[UploadedImage]) -> tuple[ImageAsset, ...]:
        accepted: list[tuple[UploadedImage, str]] = []
        skipped = 0
        for upload in files:
            media_type = resolve_media_type(upload.filename, upload.content_type)
            if media_type not in ALLOWED_MEDIA_TYPES or not upload.data:
                skipped += 1
                continue
            accepted.append((upload, media_type))

        if not accepted:
            raise UnsupportedImageError("Only PNG, JPEG or WEBP images are supported.")

        self._release_all()
        self._assets = [
            ImageAsset(
                filename=upload.filename,
                media_type=media_type,
                data=upload.data,
                preview_handle=self._registry.create(),
            )
            for upload, media_type in accepted
        ]
        logger.info("collector.set_images", accepted=len(self._assets), skipped=skipped)
        return self.assets

    def clear(self) -> None:
        self._release_all()
        self._assets = []
        logger.info("collector.clear")

    def preview(self, handle: str) -> Optional[ImageAsset]:
        if not self._registry.is_live(handle):
            return None
        for asset in self._assets:
            if asset.preview_handle == handle:
                return asset
        return None

    def close(self) -> None:
        self._release_all()
        self._assets = []

    def _release_all(self) -> None:
        for asset in self._assets:
            try:
                self._registry.revoke(asset.preview_handle)
            except Exception:
                logger.warning("collector.release_failed", handle=asset.preview_handle)
