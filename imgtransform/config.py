import dataclasses
import logging
from logging import Logger
from typing import Mapping, Optional

from imgtransform.errors import ConfigError

DEFAULT_PORT = 8080
DEFAULT_REGION = 'auto'
DEFAULT_LOG_LEVEL = 'INFO'
DEFAULT_STORE_TIMEOUT = 10.0

REQUIRED_ENV = [
    'R2_ENDPOINT',
    'R2_ACCESS_KEY_ID',
    'R2_SECRET_ACCESS_KEY',
    'R2_BUCKET_NAME',
]


@dataclasses.dataclass(eq=True, frozen=True)
class Config:
  endpoint: str
  access_key_id: str
  secret_access_key: str = dataclasses.field(repr=False)
  bucket_name: str
  region: str = DEFAULT_REGION
  port: int = DEFAULT_PORT
  log_level: str = DEFAULT_LOG_LEVEL
  store_timeout: float = DEFAULT_STORE_TIMEOUT

  @classmethod
  def from_env(cls, env: Mapping[str, str], log: Optional[Logger] = None) -> 'Config':
    missing = [name for name in REQUIRED_ENV if env.get(name, '') == '']
    if len(missing) != 0:
      raise ConfigError(f'environment variable not set: {", ".join(missing)}')

    port_str = env.get('PORT', str(DEFAULT_PORT))
    try:
      port = int(port_str)
      if not 0 < port < 65536:
        raise ValueError(f'out of range: {port}')
    except ValueError as e:
      if log is not None:
        log.warning({
            'message': 'invalid PORT value, using default',
            'value': port_str,
            'reason': str(e),
            'default': DEFAULT_PORT,
        })
      port = DEFAULT_PORT

    timeout_str = env.get('STORE_TIMEOUT', str(DEFAULT_STORE_TIMEOUT))
    try:
      store_timeout = float(timeout_str)
    except ValueError:
      raise ConfigError(f'invalid STORE_TIMEOUT: {timeout_str}')
    if store_timeout <= 0:
      raise ConfigError(f'invalid STORE_TIMEOUT: {timeout_str}')

    log_level = (env.get('LOG_LEVEL') or DEFAULT_LOG_LEVEL).upper()
    if log_level not in logging.getLevelNamesMapping():
      raise ConfigError(f'invalid LOG_LEVEL: {log_level}')

    return cls(
        endpoint=env['R2_ENDPOINT'],
        access_key_id=env['R2_ACCESS_KEY_ID'],
        secret_access_key=env['R2_SECRET_ACCESS_KEY'],
        bucket_name=env['R2_BUCKET_NAME'],
        region=env.get('R2_REGION') or DEFAULT_REGION,
        port=port,
        log_level=log_level,
        store_timeout=store_timeout)
