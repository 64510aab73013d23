import re
from typing import Mapping, Optional
from urllib import parse

from imgtransform.errors import InvalidKey, InvalidParams
from imgtransform.transform.index import OutputFormat, TransformParams
from imgtransform.typing import ObjectKey

MAX_KEY_LENGTH = 1024

KEY_SEPARATORS = frozenset('/-_.')

int_re = re.compile(r'-?[0-9]{1,10}')


def is_allowed_key_char(c: str) -> bool:
  return c.isalnum() or c in KEY_SEPARATORS


def validate_key(raw_key: str) -> ObjectKey:
  if raw_key == '':
    raise InvalidKey('key parameter is required')

  # Length is bounded before decoding.
  if MAX_KEY_LENGTH < len(raw_key):
    raise InvalidKey(f'key parameter too long (max: {MAX_KEY_LENGTH})')

  try:
    decoded = parse.unquote(raw_key, errors='strict')
  except UnicodeDecodeError:
    raise InvalidKey('invalid URL encoding')

  # Every check below runs on the decoded value.
  if not all(is_allowed_key_char(c) for c in decoded):
    raise InvalidKey('key contains invalid characters')

  if '..' in decoded or decoded.startswith('/') or '//' in decoded or '\\' in decoded:
    raise InvalidKey('invalid key: path traversal detected')

  return ObjectKey(decoded)


def parse_int(name: str, value: Optional[str]) -> Optional[int]:
  if value is None:
    return None

  if int_re.fullmatch(value) is None:
    raise InvalidParams(f'{name} must be an integer')

  return int(value)


def parse_params(query: Mapping[str, str]) -> TransformParams:
  f = query.get('f')
  if f is None:
    output_format = None
  else:
    output_format = OutputFormat.maybe_from_param(f)
    if output_format is None:
      raise InvalidParams(f"unsupported format '{f}'. supported: jpg, png, webp, avif")

  params = TransformParams(
      width=parse_int('w', query.get('w')),
      height=parse_int('h', query.get('h')),
      format=output_format,
      quality=parse_int('q', query.get('q')))
  params.validate()

  return params
