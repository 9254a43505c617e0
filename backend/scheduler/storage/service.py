"""Local-disk storage for candidate resumes.

Locators stored on the student row are file names relative to the upload
directory. Older absolute paths and URLs are resolved by their basename.
"""

import io
import logging
import re
import secrets
import time
import zipfile
from pathlib import Path

from ..errors import InvalidUpload

logger = logging.getLogger(__name__)

RESUME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def clean_student_name(name: str) -> str:
    """Name-only download file stem: alphanumerics and underscores, max 50 chars."""
    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", (name or "").strip())
    cleaned = re.sub(r"\s+", "_", cleaned)[:50]
    return cleaned or "resume"


class ResumeStorage:
    def __init__(self, base_dir: str | Path, max_bytes: int):
        self.base_dir = Path(base_dir)
        self.max_bytes = max_bytes

    def ensure_dir(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def validate(self, filename: str | None, content_type: str | None, size: int) -> str:
        """Check an upload and return its normalised extension."""
        if not filename:
            raise InvalidUpload("No file uploaded")
        ext = Path(filename).suffix.lower()
        if ext not in RESUME_TYPES or content_type not in RESUME_TYPES.values():
            raise InvalidUpload()
        if size == 0:
            raise InvalidUpload("Uploaded file is empty")
        if size > self.max_bytes:
            raise InvalidUpload(f"File too large. Maximum size allowed is {self.max_bytes // (1024 * 1024)}MB.")
        return ext

    def save(self, data: bytes, original_name: str) -> str:
        ext = Path(original_name).suffix.lower()
        base = re.sub(r"[^a-zA-Z0-9]", "_", Path(original_name).stem)[:80]
        locator = f"resume-{base}-{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"
        self.ensure_dir()
        (self.base_dir / locator).write_bytes(data)
        logger.debug("Stored resume %s (%d bytes)", locator, len(data))
        return locator

    def path_for(self, locator: str) -> Path:
        # Only the basename is trusted, so a locator can never escape base_dir
        name = locator.rstrip("/").split("/")[-1].split("\\")[-1]
        return self.base_dir / name

    def exists(self, locator: str | None) -> bool:
        return bool(locator) and self.path_for(locator).is_file()

    def delete(self, locator: str | None) -> bool:
        if not locator:
            return False
        path = self.path_for(locator)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError:
            logger.warning("Could not remove resume file %s", path, exc_info=True)
            return False
        return True

    def build_zip(self, entries: list[tuple[str, str]]) -> tuple[bytes, int, int]:
        """Zip ``(student_name, locator)`` pairs. Returns (archive, added, skipped)."""
        buf = io.BytesIO()
        used: set[str] = set()
        added = skipped = 0
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for student_name, locator in entries:
                path = self.path_for(locator)
                if not path.is_file():
                    skipped += 1
                    continue
                stem = clean_student_name(student_name)
                ext = path.suffix.lower()
                arcname = f"{stem}{ext}"
                counter = 1
                while arcname in used:
                    arcname = f"{stem}_{counter}{ext}"
                    counter += 1
                used.add(arcname)
                archive.write(path, arcname=arcname)
                added += 1
        return buf.getvalue(), added, skipped
