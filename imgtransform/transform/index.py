import dataclasses
import decimal
import time
from enum import Enum
from typing import Any, Optional, Tuple

import pyvips
from pyvips import Image, Kernel  # type: ignore

from imgtransform.errors import InvalidParams, ProcessingFailed
from imgtransform.guard.index import (
    MAX_DIMENSION,
    check_output_dimensions,
    check_source_pixels
)
from imgtransform.typing import ContentType, Size

MIN_QUALITY = 1
MAX_QUALITY = 100
DEFAULT_QUALITY = 80

OCTET_STREAM = ContentType('application/octet-stream')

JPEG_FLATTEN_BACKGROUND = 255.0


class OutputFormat(Enum):
  JPEG = 'jpeg'
  PNG = 'png'
  WEBP = 'webp'
  AVIF = 'avif'

  @classmethod
  def maybe_from_param(cls, s: str) -> Optional['OutputFormat']:
    match s.lower():
      case 'jpg' | 'jpeg':
        return cls.JPEG
      case 'png':
        return cls.PNG
      case 'webp':
        return cls.WEBP
      case 'avif':
        return cls.AVIF
      case _:
        return None

  @classmethod
  def maybe_from_image(cls, image: Image) -> Optional['OutputFormat']:
    if image.get_typeof('vips-loader') == 0:
      return None

    loader: str = image.get('vips-loader')
    if loader.startswith('jpegload'):
      return cls.JPEG
    if loader.startswith('pngload'):
      return cls.PNG
    if loader.startswith('webpload'):
      return cls.WEBP
    if loader.startswith('heifload'):
      # HEIC shares the loader with AVIF.
      if image.get_typeof('heif-compression') != 0 and image.get('heif-compression') == 'hevc':
        return None
      return cls.AVIF
    return None

  @property
  def content_type(self) -> ContentType:
    return ContentType(f'image/{self.value}')

  @property
  def lossless(self) -> bool:
    return self in (OutputFormat.PNG, OutputFormat.WEBP)

  def extension(self) -> str:
    match self:
      case OutputFormat.JPEG:
        return '.jpg'
      case OutputFormat.PNG:
        return '.png'
      case OutputFormat.WEBP:
        return '.webp'
      case OutputFormat.AVIF:
        return '.avif'
      case _:
        raise Exception('system error')

  def resolve_quality(self, quality: Optional[int]) -> Optional[int]:
    if self.lossless:
      if quality is not None:
        raise InvalidParams(
            f'quality parameter is not supported for {self.name} (lossless only)')
      return None

    return DEFAULT_QUALITY if quality is None else quality

  def save_options(self, quality: Optional[int]) -> dict[str, Any]:
    # Decoded metadata (EXIF, XMP, ICC) is never written back.
    match self:
      case OutputFormat.JPEG | OutputFormat.AVIF:
        return {'Q': quality, 'strip': True}
      case OutputFormat.PNG:
        return {'strip': True}
      case OutputFormat.WEBP:
        return {'lossless': True, 'strip': True}
      case _:
        raise Exception('system error')


@dataclasses.dataclass(frozen=True)
class TransformParams:
  width: Optional[int] = None
  height: Optional[int] = None
  format: Optional[OutputFormat] = None
  quality: Optional[int] = None

  def needs_transform(self) -> bool:
    return (
        self.width is not None or self.height is not None or self.format is not None or
        self.quality is not None)

  def validate(self) -> None:
    if self.quality is not None and not MIN_QUALITY <= self.quality <= MAX_QUALITY:
      raise InvalidParams(f'quality must be {MIN_QUALITY}-{MAX_QUALITY}, got {self.quality}')

    if self.width is not None and not 1 <= self.width <= MAX_DIMENSION:
      raise InvalidParams(f'width must be 1-{MAX_DIMENSION}, got {self.width}')

    if self.height is not None and not 1 <= self.height <= MAX_DIMENSION:
      raise InvalidParams(f'height must be 1-{MAX_DIMENSION}, got {self.height}')


@dataclasses.dataclass(frozen=True)
class Transformed:
  body: bytes
  content_type: ContentType
  output_format: OutputFormat
  source: Size
  target: Size
  resized: bool
  vips_us: int


def size_of(image: Image) -> Size:
  return Size(image.get('width'), image.get('height'))


def round_half_away(x: float) -> int:
  return int(decimal.Decimal(x).to_integral_value(rounding=decimal.ROUND_HALF_UP))


def resolve_dimensions(source: Size, width: Optional[int], height: Optional[int]) -> Size:
  match (width, height):
    case (int() as w, int() as h):
      scale = min(w / source.width, h / source.height)
      return Size(
          max(1, round_half_away(source.width * scale)),
          max(1, round_half_away(source.height * scale)))
    case (int() as w, None):
      scale = w / source.width
      return Size(w, max(1, round_half_away(source.height * scale)))
    case (None, int() as h):
      scale = h / source.height
      return Size(max(1, round_half_away(source.width * scale)), h)
    case (None, None):
      return source
    case _:
      raise Exception('system error')


def negotiate_format(
    detected: Optional[OutputFormat],
    requested: Optional[OutputFormat],
) -> OutputFormat:
  if requested is not None:
    return requested

  if detected is not None:
    return detected

  return OutputFormat.JPEG


def infer_content_type(data: bytes) -> ContentType:
  if data.startswith(b'\xff\xd8\xff'):
    return OutputFormat.JPEG.content_type
  if data.startswith(b'\x89PNG'):
    return OutputFormat.PNG.content_type
  if 12 <= len(data) and data.startswith(b'RIFF') and data[8:12] == b'WEBP':
    return OutputFormat.WEBP.content_type
  if 12 <= len(data) and data[4:12] == b'ftypavif':
    return OutputFormat.AVIF.content_type
  return OCTET_STREAM


def decode_image(data: bytes) -> Tuple[Image, Optional[OutputFormat]]:
  if len(data) == 0:
    raise ProcessingFailed('decode failed: empty input')

  # Only the header is parsed here; pixels are decoded lazily on encode.
  try:
    image = Image.new_from_buffer(data, '')
  except pyvips.Error as e:
    raise ProcessingFailed(f'decode failed: {e}')

  source = size_of(image)
  if source.width == 0 or source.height == 0:
    raise ProcessingFailed(f'decode failed: degenerate image {source}')

  return image, OutputFormat.maybe_from_image(image)


def resize_image(image: Image, target: Size) -> Image:
  source = size_of(image)

  try:
    if image.hasalpha():
      band_format = image.format
      resized = image.premultiply().resize(
          target.width / source.width,
          vscale=target.height / source.height,
          kernel=Kernel.LANCZOS3).unpremultiply().cast(band_format)
    else:
      resized = image.resize(
          target.width / source.width,
          vscale=target.height / source.height,
          kernel=Kernel.LANCZOS3)
  except pyvips.Error as e:
    raise ProcessingFailed(f'resize failed: {e}')

  if size_of(resized) != target:
    raise ProcessingFailed(f'resize failed: expected {target}, got {size_of(resized)}')

  return resized


def encode_image(image: Image, output_format: OutputFormat, quality: Optional[int]) -> bytes:
  try:
    if output_format == OutputFormat.JPEG and image.hasalpha():
      image = image.flatten(background=JPEG_FLATTEN_BACKGROUND)

    return image.write_to_buffer(output_format.extension(), **output_format.save_options(quality))
  except pyvips.Error as e:
    raise ProcessingFailed(f'{output_format.name} encode failed: {e}')


def transform(data: bytes, params: TransformParams) -> Transformed:
  params.validate()

  start_ns = time.time_ns()

  image, detected = decode_image(data)
  source = size_of(image)
  check_source_pixels(source)

  target = resolve_dimensions(source, params.width, params.height)
  check_output_dimensions(target)

  resized = target != source
  if resized:
    image = resize_image(image, target)

  output_format = negotiate_format(detected, params.format)
  quality = output_format.resolve_quality(params.quality)

  body = encode_image(image, output_format, quality)

  return Transformed(
      body=body,
      content_type=output_format.content_type,
      output_format=output_format,
      source=source,
      target=target,
      resized=resized,
      vips_us=(time.time_ns() - start_ns) // 1000)
