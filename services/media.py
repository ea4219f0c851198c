"""Image upload validation, storage and optimization."""
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps
from loguru import logger

from shared.errors import FileTooLargeError, UnsupportedMediaError

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
JPEG_QUALITY = 85


@dataclass
class IncomingFile:
    """An uploaded file already read into memory."""
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename or "").suffix.lower()


class MediaProcessor:
    """Re-encode uploaded images for the web."""

    @staticmethod
    def optimize_image(image_path: Path, output_path: Path, max_size: int = 800) -> bool:
        """Fit an image inside a max_size box and save it as JPEG."""
        try:
            with Image.open(image_path) as opened:
                img = ImageOps.exif_transpose(opened)

                # Convert to RGB if necessary
                if img.mode in ('RGBA', 'LA', 'P'):
                    if img.mode == 'P':
                        img = img.convert('RGBA')
                    background = Image.new('RGB', img.size, (255, 255, 255))
                    background.paste(img, mask=img.split()[-1])
                    img = background
                elif img.mode != 'RGB':
                    img = img.convert('RGB')

                # thumbnail() keeps aspect ratio and never upscales
                img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)

                output_path.parent.mkdir(parents=True, exist_ok=True)
                img.save(output_path, 'JPEG', quality=JPEG_QUALITY, optimize=True)

            logger.debug(f"Optimized {image_path.name} -> {output_path.name}")
            return True

        except Exception as e:
            logger.error(f"Error optimizing {image_path}: {e}")
            if output_path.exists():
                output_path.unlink()
            return False


class MediaStorage:
    """A directory of images served under a URL prefix."""

    def __init__(self, directory, url_prefix: str, max_bytes: int, max_dimension: int):
        self.directory = Path(directory)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.max_bytes = max_bytes
        self.max_dimension = max_dimension

    def check_type(self, filename: str, content_type: Optional[str]):
        extension = Path(filename or "").suffix.lower()
        if extension not in ALLOWED_EXTENSIONS or (content_type or "").lower() not in ALLOWED_MIME_TYPES:
            raise UnsupportedMediaError(
                f"Only image files are allowed (jpeg, jpg, png, gif, webp): {filename}"
            )

    def check_size(self, filename: str, size: int):
        if size > self.max_bytes:
            limit_mb = self.max_bytes / (1024 * 1024)
            raise FileTooLargeError(f"{filename} exceeds the {limit_mb:g}MB limit")

    def validate(self, incoming: IncomingFile):
        self.check_type(incoming.filename, incoming.content_type)
        self.check_size(incoming.filename, len(incoming.data))

    def save(self, incoming: IncomingFile) -> str:
        """Store an upload and return its relative URL.

        The optimized JPEG replaces the original when re-encoding succeeds;
        otherwise the original is kept as uploaded.
        """
        self.validate(incoming)
        self.directory.mkdir(parents=True, exist_ok=True)

        stem = f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}"
        original = self.directory / f"{stem}{incoming.extension}"
        original.write_bytes(incoming.data)

        optimized = self.directory / f"{stem}-optimized.jpg"
        if MediaProcessor.optimize_image(original, optimized, self.max_dimension):
            original.unlink()
            stored = optimized
        else:
            logger.warning(f"Keeping original upload {original.name}")
            stored = original

        logger.info(f"Stored {incoming.filename} as {stored.name}")
        return f"{self.url_prefix}/{stored.name}"

    def resolve(self, url: Optional[str]) -> Optional[Path]:
        """Map a stored URL back to a file inside the directory, or None."""
        if not url:
            return None
        relative = url
        if relative.startswith(self.url_prefix + "/"):
            relative = relative[len(self.url_prefix) + 1:]
        root = self.directory.resolve()
        candidate = (root / relative.lstrip("/")).resolve()
        if not candidate.is_relative_to(root) or candidate == root:
            logger.warning(f"Refusing path outside {root}: {url}")
            return None
        return candidate

    def delete(self, url: Optional[str]) -> bool:
        path = self.resolve(url)
        if path is None:
            return False
        if not path.is_file():
            logger.warning(f"Media file not found for deletion: {path}")
            return False
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Error deleting media file {path}: {e}")
            return False
        logger.info(f"Deleted media file {path.name}")
        return True
