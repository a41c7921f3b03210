"""Wiring between views and the stores."""
import functools
from dataclasses import dataclass

from aws_backend.dynamodb_client import DynamoDBClient
from aws_backend.lambda_client import LambdaClient
from aws_backend.s3_client import S3Client

from .stores import IdentityStore, SettingsStore, StockStore


@dataclass
class Backend:
    ddb: DynamoDBClient
    s3: S3Client
    functions: LambdaClient


@functools.lru_cache(maxsize=None)
def get_backend():
    return Backend(ddb=DynamoDBClient(), s3=S3Client(), functions=LambdaClient())


def stock_store():
    return StockStore(get_backend())


def settings_store():
    return SettingsStore(get_backend())


def identity_store():
    return IdentityStore(get_backend())
