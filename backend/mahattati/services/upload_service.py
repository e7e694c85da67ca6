from pathlib import Path
from typing import Iterable, List, Optional
from fastapi import UploadFile
from mahattati.core.exceptions import ValidationError
from mahattati.storage.local_storage import storage

IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}
IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}

VIDEO_EXTENSIONS = {".mp4", ".webm", ".mov"}
VIDEO_MIME_TYPES = {"video/mp4", "video/webm", "video/quicktime"}


class PendingUpload:
    """An upload that passed validation but is not written to disk yet"""

    def __init__(self, content: bytes, file_ext: str, content_type: str):
        self.content = content
        self.file_ext = file_ext
        self.content_type = content_type

    @property
    def media_type(self) -> str:
        return "video" if self.content_type.startswith("video/") else "image"


class UploadService:
    @staticmethod
    async def read_upload(
        file: UploadFile,
        field: str,
        max_size: int,
        allowed_extensions: Iterable[str] = IMAGE_EXTENSIONS,
        allowed_mime_types: Iterable[str] = IMAGE_MIME_TYPES,
    ) -> PendingUpload:
        """Read an upload into memory, checking type and size"""
        if not file.filename:
            raise ValidationError.for_field(field, "Filename is required")

        file_ext = Path(file.filename).suffix.lower()
        content_type = (file.content_type or "").lower()
        # Both the extension and the declared content type must be allowed
        if file_ext not in allowed_extensions or content_type not in allowed_mime_types:
            raise ValidationError.for_field(
                field,
                f"File type not supported. Allowed: {', '.join(sorted(allowed_extensions))}",
            )

        content = await file.read()
        if len(content) > max_size:
            raise ValidationError.for_field(
                field, f"File too large. Maximum size is {max_size} bytes"
            )
        return PendingUpload(content, file_ext, content_type)

    @staticmethod
    async def read_images(
        files: Optional[List[UploadFile]],
        field: str,
        max_size: int,
        max_count: int,
    ) -> List[PendingUpload]:
        """Validate every image before any of them is stored"""
        files = [f for f in (files or []) if f is not None and f.filename]
        if len(files) > max_count:
            raise ValidationError.for_field(field, f"At most {max_count} images are allowed")
        return [await UploadService.read_upload(f, field, max_size) for f in files]

    @staticmethod
    def store(category: str, uploads: List[PendingUpload]) -> List[str]:
        """Write validated uploads and return their public URLs"""
        return [storage.save_bytes(category, u.content, u.file_ext) for u in uploads]

    @staticmethod
    def discard(urls: Iterable[str]) -> None:
        for url in urls:
            storage.delete_file(url)


upload_service = UploadService()
