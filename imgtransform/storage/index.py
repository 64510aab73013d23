import logging
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_s3.client import S3Client

from imgtransform.config import Config
from imgtransform.errors import Internal, NotFound
from imgtransform.guard.index import check_body_size, check_content_length
from imgtransform.typing import ObjectKey


def is_not_found_client_error(exception: ClientError) -> bool:
  if 'Error' not in exception.response:
    return False
  if 'Code' not in exception.response['Error']:
    return False
  return exception.response['Error']['Code'] in ['404', 'NoSuchKey']


class ObjectStore:

  def __init__(self, log: logging.Logger, s3: S3Client, bucket: str):
    self.log = log
    self.s3 = s3
    self.bucket = bucket

  @classmethod
  def from_config(cls, log: logging.Logger, config: Config) -> 'ObjectStore':
    s3 = boto3.client(
        's3',
        endpoint_url=config.endpoint,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name=config.region,
        config=BotoConfig(
            s3={'addressing_style': 'path'},
            connect_timeout=config.store_timeout,
            read_timeout=config.store_timeout))
    return cls(log=log, s3=s3, bucket=config.bucket_name)

  def log_debug(self, message: str, dict: dict[str, Any]) -> None:
    self.log.debug({
        'message': message,
        'bucket': self.bucket,
        **dict,
    })

  def fetch(self, key: ObjectKey) -> bytes:
    try:
      res = self.s3.get_object(Bucket=self.bucket, Key=key)
    except ClientError as e:
      if is_not_found_client_error(e):
        raise NotFound(key)
      raise Internal(f'get_object failed: {e}')
    except BotoCoreError as e:
      raise Internal(f'get_object failed: {e}')

    body = res['Body']
    chunks: list[bytes] = []
    size = 0
    try:
      check_content_length(res.get('ContentLength'))

      for chunk in body.iter_chunks():
        size += len(chunk)
        check_body_size(size)
        chunks.append(chunk)
    except (BotoCoreError, OSError) as e:
      raise Internal(f'failed to read object body: {e}')
    finally:
      body.close()

    self.log_debug('fetched', {'key': key, 'size': size})

    return b''.join(chunks)
