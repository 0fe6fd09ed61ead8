"""Thumbnail derivation and preview watermarking with Pillow."""

import io

from PIL import Image, ImageDraw, ImageFont, ImageOps

THUMBNAIL_SIZE = (300, 400)
THUMBNAIL_QUALITY = 80

WATERMARK_TEXT = "PREVIEW"
WATERMARK_OPACITY = 0.3


def add_watermark(
    image_bytes: bytes, text: str = WATERMARK_TEXT, opacity: float = WATERMARK_OPACITY
) -> bytes:
    """Stamp ``text`` across the center of the image and return it as PNG.

    The font scales with the image width so the mark stays legible on both
    previews and full-size outputs.

    Raises:
        PIL.UnidentifiedImageError: Bytes are not a decodable image
    """
    with Image.open(io.BytesIO(image_bytes)) as source:
        base = ImageOps.exif_transpose(source).convert("RGBA")

    overlay = Image.new("RGBA", base.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default(size=max(12, base.width // 8))

    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    position = (
        (base.width - (right - left)) / 2 - left,
        (base.height - (bottom - top)) / 2 - top,
    )
    draw.text(position, text, font=font, fill=(255, 255, 255, round(255 * opacity)))

    marked = Image.alpha_composite(base, overlay)
    buffer = io.BytesIO()
    marked.save(buffer, format="PNG")
    return buffer.getvalue()


def create_thumbnail(
    image_bytes: bytes, size: tuple[int, int] = THUMBNAIL_SIZE, quality: int = THUMBNAIL_QUALITY
) -> bytes:
    """Crop-to-fill ``image_bytes`` into a ``size`` JPEG.

    Transparent images are flattened onto white, since JPEG has no alpha.

    Raises:
        PIL.UnidentifiedImageError: Bytes are not a decodable image
    """
    with Image.open(io.BytesIO(image_bytes)) as source:
        source = ImageOps.exif_transpose(source)
        if source.mode in ("RGBA", "LA") or (source.mode == "P" and "transparency" in source.info):
            rgba = source.convert("RGBA")
            flattened = Image.new("RGB", rgba.size, (255, 255, 255))
            flattened.paste(rgba, mask=rgba.split()[-1])
            source = flattened
        else:
            source = source.convert("RGB")

        thumbnail = ImageOps.fit(source, size, method=Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    thumbnail.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()
