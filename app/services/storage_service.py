"""
Blob storage for post, comment and design images.
Cloudflare R2 when credentials are configured, otherwise the local UPLOAD_DIR.
"""

import io
import logging
import uuid
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..config import (
    MAX_UPLOAD_BYTES,
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_BASE_URL,
    R2_SECRET_ACCESS_KEY,
    UPLOAD_DIR,
    WATERMARK_TEXT,
)
from ..errors import BadRequestError, UnprocessableEntityError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
}
MAX_IMAGES_PER_UPLOAD = 5


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


def apply_watermark(contents: bytes, text: str = WATERMARK_TEXT) -> bytes:
    """Stamp the watermark text in the top-left corner, keeping the source format"""
    try:
        image = Image.open(io.BytesIO(contents))
        image_format = image.format or "PNG"
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise UnprocessableEntityError("Error adding watermark: unreadable image") from e

    canvas = image.convert("RGBA")
    overlay = Image.new("RGBA", canvas.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)
    font_size = max(12, canvas.height // 15)
    try:
        font = ImageFont.load_default(size=font_size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        font = ImageFont.load_default()
    draw.text((10, 10), text, font=font, fill=(0, 0, 0, 160))

    stamped = Image.alpha_composite(canvas, overlay)
    if image_format == "JPEG":
        stamped = stamped.convert("RGB")

    output = io.BytesIO()
    stamped.save(output, format=image_format)
    return output.getvalue()


class BlobStorage:
    """Blob storage collaborator: store an image, get back its URL"""

    def __init__(self):
        self.use_r2 = bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)
        self.upload_dir = Path(UPLOAD_DIR)
        if not self.use_r2:
            logger.info(f"📁 R2 not configured, storing uploads in {self.upload_dir.resolve()}")

    async def read_validated(self, file: UploadFile) -> tuple[bytes, str]:
        if file.content_type not in ALLOWED_IMAGE_TYPES:
            raise BadRequestError("Invalid file type. Only JPEG and PNG images are allowed.")

        contents = await file.read()
        if len(contents) > MAX_UPLOAD_BYTES:
            raise BadRequestError(
                f"File size exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit. "
                f"Your file is {len(contents) / (1024 * 1024):.2f}MB."
            )
        return contents, ALLOWED_IMAGE_TYPES[file.content_type]

    def put(self, contents: bytes, key: str, content_type: str) -> str:
        if self.use_r2:
            try:
                get_r2_client().put_object(
                    Bucket=R2_BUCKET_NAME, Key=key, Body=contents, ContentType=content_type
                )
            except (BotoCoreError, ClientError) as e:
                logger.error(f"❌ Failed to upload {key} to R2: {e}")
                raise UnprocessableEntityError("Failed to store image") from e
            base_url = R2_PUBLIC_BASE_URL or f"https://{R2_BUCKET_NAME}.r2.dev"
            return f"{base_url.rstrip('/')}/{key}"

        path = self.upload_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(contents)
        except OSError as e:
            logger.error(f"❌ Failed to write {path}: {e}")
            raise UnprocessableEntityError("Failed to store image") from e
        return f"/uploads/{key}"

    async def store(self, file: UploadFile, folder: str, watermark: bool = False) -> str:
        contents, extension = await self.read_validated(file)
        if watermark:
            contents = apply_watermark(contents)

        key = f"{folder}/{uuid.uuid4()}.{extension}"
        url = self.put(contents, key, file.content_type)
        logger.info(f"✅ Stored image {key}{' (watermarked)' if watermark else ''}")
        return url

    async def store_many(self, files: list[UploadFile], folder: str, watermark: bool = False) -> list[str]:
        if len(files) > MAX_IMAGES_PER_UPLOAD:
            raise BadRequestError(f"At most {MAX_IMAGES_PER_UPLOAD} images per upload")
        return [await self.store(file, folder, watermark) for file in files]
