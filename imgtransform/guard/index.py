from typing import Optional

from imgtransform.errors import ResolutionTooLarge, TooLarge
from imgtransform.typing import Size

MAX_INPUT_SIZE = 10 * 1024 * 1024
MAX_DIMENSION = 4096
MAX_PIXELS = MAX_DIMENSION * MAX_DIMENSION


def check_content_length(content_length: Optional[int]) -> None:
  # Stores may omit the length or report 0 for chunked bodies.
  if content_length is None or content_length <= 0:
    return

  if MAX_INPUT_SIZE < content_length:
    raise TooLarge(content_length, MAX_INPUT_SIZE)


def check_body_size(size: int) -> None:
  if MAX_INPUT_SIZE < size:
    raise TooLarge(size, MAX_INPUT_SIZE)


def check_source_pixels(source: Size) -> None:
  if MAX_PIXELS < source.pixels:
    raise ResolutionTooLarge(source, MAX_DIMENSION)


def check_output_dimensions(target: Size) -> None:
  if MAX_DIMENSION < target.width or MAX_DIMENSION < target.height:
    raise ResolutionTooLarge(target, MAX_DIMENSION)
