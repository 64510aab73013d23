import logging
import time
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import imgtransform
from imgtransform.errors import (
    ImgTransformError,
    Internal,
    NotFound,
    ProcessingFailed
)
from imgtransform.request.index import parse_params, validate_key
from imgtransform.storage.index import ObjectStore
from imgtransform.transform.index import infer_content_type, transform
from imgtransform.typing import ContentType, ErrorBody

CACHE_CONTROL_IMMUTABLE = 'public, max-age=31536000, immutable'


def image_response(body: bytes, content_type: ContentType) -> Response:
  return Response(
      content=body,
      media_type=content_type,
      headers={'cache-control': CACHE_CONTROL_IMMUTABLE},
  )


def json_error(status: int, message: str) -> JSONResponse:
  body: ErrorBody = {'error': message}
  return JSONResponse(body, status_code=status)


def log_error(log: logging.Logger, path: str, e: ImgTransformError) -> None:
  match e:
    case NotFound():
      log.warning({'message': 'object not found', 'path': path, 'key': e.key})
    case Internal():
      log.error({'message': 'storage error', 'path': path, 'reason': e.reason})
    case ProcessingFailed():
      log.warning({'message': 'failed to process image', 'path': path, 'reason': e.reason})
    case _:
      log.info({
          'message': 'rejected',
          'path': path,
          'status': int(e.status),
          'reason': e.reason,
      })


def create_app(log: logging.Logger, store: ObjectStore) -> FastAPI:
  app = FastAPI(title='imgtransform', version=imgtransform.version)

  @app.middleware('http')
  async def access_log(
      request: Request,
      call_next: Callable[[Request], Awaitable[Response]],
  ) -> Response:
    start_ns = time.time_ns()
    response = await call_next(request)
    log.info({
        'message': 'request',
        'method': request.method,
        'path': request.url.path,
        'status': response.status_code,
        'duration_ms': (time.time_ns() - start_ns) / 1_000_000,
    })
    return response

  @app.exception_handler(ImgTransformError)
  async def handle_transform_error(request: Request, e: ImgTransformError) -> JSONResponse:
    log_error(log, request.url.path, e)
    return JSONResponse(e.to_body(), status_code=e.status)

  @app.exception_handler(StarletteHTTPException)
  async def handle_http_error(request: Request, e: StarletteHTTPException) -> JSONResponse:
    return json_error(e.status_code, str(e.detail).lower())

  @app.exception_handler(Exception)
  async def handle_unexpected_error(request: Request, e: Exception) -> JSONResponse:
    log.exception({'message': 'unexpected error', 'path': request.url.path, 'reason': str(e)})
    return json_error(Internal.status, Internal('unexpected error').message)

  @app.get('/health', response_class=PlainTextResponse)
  async def health() -> str:
    return 'ok'

  @app.get('/transform/{key:path}')
  async def transform_object(key: str, request: Request) -> Response:
    object_key = validate_key(key)
    params = parse_params(request.query_params)

    data = await run_in_threadpool(store.fetch, object_key)

    if not params.needs_transform():
      content_type = infer_content_type(data)
      log.debug({
          'message': 'passthrough',
          'key': object_key,
          'content_type': content_type,
          'img_size': len(data),
      })
      return image_response(data, content_type)

    result = await run_in_threadpool(transform, data, params)
    log.info({
        'message': 'transformed',
        'key': object_key,
        'source': str(result.source),
        'target': str(result.target),
        'format': result.output_format.name,
        'resized': result.resized,
        'img_size': len(result.body),
        'vips_us': result.vips_us,
    })
    return image_response(result.body, result.content_type)

  return app
