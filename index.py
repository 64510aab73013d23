import logging
import os
import sys
from typing import Tuple

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from imgtransform.config import Config
from imgtransform.errors import ConfigError
from imgtransform.log import LOGGER_NAME, init_logging
from imgtransform.server.index import create_app
from imgtransform.storage.index import ObjectStore


def load_config() -> Config:
  load_dotenv()
  log = init_logging()
  try:
    return Config.from_env(os.environ, log)
  except ConfigError as e:
    log.critical({'message': 'invalid configuration', 'reason': str(e)})
    sys.exit(1)


def build() -> Tuple[Config, FastAPI]:
  config = load_config()
  log = init_logging(config.log_level)
  store = ObjectStore.from_config(log, config)
  return config, create_app(log, store)


def create() -> FastAPI:
  # uvicorn index:create --factory
  return build()[1]


def main() -> None:
  config, app = build()
  logging.getLogger(LOGGER_NAME).info({
      'message': 'starting server',
      'port': config.port,
      'bucket': config.bucket_name,
  })

  # uvicorn drains in-flight requests on SIGINT/SIGTERM.
  uvicorn.run(app, host='0.0.0.0', port=config.port, log_config=None)


if __name__ == '__main__':
  main()
