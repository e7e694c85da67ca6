import uuid
from pathlib import Path
from mahattati.core.config import settings


class LocalStorage:
    """
    Uploaded media on local disk.

    Files live under UPLOAD_DIR/<category>/ and are served by the app at
    /uploads/<category>/<filename>.
    """

    URL_PREFIX = "/uploads"

    def __init__(self, upload_dir: str | None = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def save_bytes(self, category: str, content: bytes, file_ext: str) -> str:
        """Write content under a unique name and return its public URL"""
        unique_filename = f"{category.rstrip('s')}-{uuid.uuid4().hex}{file_ext.lower()}"
        category_dir = self.upload_dir / category
        category_dir.mkdir(parents=True, exist_ok=True)

        with open(category_dir / unique_filename, "wb") as f:
            f.write(content)

        return f"{self.URL_PREFIX}/{category}/{unique_filename}"

    def get_file_path(self, url: str) -> Path | None:
        """Disk path for a public URL, or None if it is not one of ours"""
        prefix = f"{self.URL_PREFIX}/"
        if not url or not url.startswith(prefix):
            return None
        relative = Path(url[len(prefix):])
        # Stored names never contain "..", so refuse anything that does
        if ".." in relative.parts:
            return None
        return self.upload_dir / relative

    def delete_file(self, url: str) -> bool:
        """Delete a stored file by its public URL"""
        file_path = self.get_file_path(url)
        if file_path is not None and file_path.exists():
            file_path.unlink()
            return True
        return False

    def file_exists(self, url: str) -> bool:
        file_path = self.get_file_path(url)
        return file_path is not None and file_path.exists()


storage = LocalStorage()
