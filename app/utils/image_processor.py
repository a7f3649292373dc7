from io import BytesIO
from PIL import Image, UnidentifiedImageError
from loguru import logger

OUTPUT_FORMAT = "JPEG"
OUTPUT_EXTENSION = "jpg"


class UnsupportedImageError(Exception):
    """Raised when the fetched bytes cannot be decoded as a raster image."""


class ImageProcessor:
    @staticmethod
    def compress(data: bytes, quality: int = 50) -> bytes:
        """Re-encodes any decodable raster image as a lossy JPEG at the given quality."""
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                if img.mode not in ("RGB", "L"):
                    # JPEG has no alpha or palette; flatten onto white
                    rgba = img.convert("RGBA")
                    flattened = Image.new("RGB", rgba.size, (255, 255, 255))
                    flattened.paste(rgba, mask=rgba.split()[-1])
                    img = flattened
                out = BytesIO()
                img.save(out, format=OUTPUT_FORMAT, quality=quality, optimize=True)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise UnsupportedImageError(str(e)) from e

        compressed = out.getvalue()
        logger.debug(f"Compressed image {len(data)} -> {len(compressed)} bytes (quality={quality})")
        return compressed
