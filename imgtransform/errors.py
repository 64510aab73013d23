from http import HTTPStatus
from typing import Optional

from imgtransform.typing import ErrorBody, ObjectKey, Size


class ImgTransformError(Exception):
  status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

  def __init__(self, message: str, reason: Optional[str] = None):
    super().__init__(message)
    self.message = message
    # Detail for server-side logs only.
    self.reason = reason if reason is not None else message

  def to_body(self) -> ErrorBody:
    return {'error': self.message}


class InvalidKey(ImgTransformError):
  status = HTTPStatus.BAD_REQUEST


class InvalidParams(ImgTransformError):
  status = HTTPStatus.BAD_REQUEST


class NotFound(ImgTransformError):
  status = HTTPStatus.NOT_FOUND

  def __init__(self, key: ObjectKey):
    super().__init__('object not found', reason=f'object not found: {key}')
    self.key = key


class TooLarge(ImgTransformError):
  status = HTTPStatus.BAD_REQUEST

  def __init__(self, size: int, max_size: int):
    super().__init__(f'object too large: {size} bytes (max: {max_size} bytes)')
    self.size = size
    self.max_size = max_size


class ResolutionTooLarge(ImgTransformError):
  status = HTTPStatus.BAD_REQUEST

  def __init__(self, size: Size, max_dimension: int):
    super().__init__(
        f'image resolution {size} exceeds maximum {max_dimension}x{max_dimension}')
    self.size = size


class ProcessingFailed(ImgTransformError):
  status = HTTPStatus.UNPROCESSABLE_ENTITY

  def __init__(self, reason: str):
    super().__init__('failed to process image', reason=reason)


class Internal(ImgTransformError):
  status = HTTPStatus.INTERNAL_SERVER_ERROR

  def __init__(self, reason: str):
    super().__init__('internal server error', reason=reason)


class ConfigError(Exception):
  pass
