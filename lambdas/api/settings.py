# lambdas/api/settings.py
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import boto3

# Region used when talking to DynamoDB Local
LOCAL_REGION = "ap-northeast-1"


@dataclass(frozen=True)
class TableSettings:
    """
    Where the resource table lives and how its key attributes are named.
    The stack injects the three DYNAMO_* variables into every function.
    """
    table_name: str
    pk_name: str = "PK"
    sk_name: str = "SK"
    local_endpoint: Optional[str] = None

    @classmethod
    def from_env(cls) -> "TableSettings":
        table_name = os.environ.get("DYNAMO_TABLE_NAME", "").strip()
        if not table_name:
            raise RuntimeError("DYNAMO_TABLE_NAME environment variable is required")

        return cls(
            table_name=table_name,
            pk_name=os.environ.get("DYNAMO_PK_NAME", "").strip() or "PK",
            sk_name=os.environ.get("DYNAMO_SK_NAME", "").strip() or "SK",
            local_endpoint=os.environ.get("DYNAMO_LOCAL_ENDPOINT", "").strip() or None,
        )


@lru_cache(maxsize=None)
def get_settings() -> TableSettings:
    return TableSettings.from_env()


@lru_cache(maxsize=None)
def get_dynamodb_table():
    """Creates the boto3 Table once per container and reuses it on warm invocations."""
    settings = get_settings()
    if settings.local_endpoint:
        dynamodb = boto3.resource(
            "dynamodb",
            endpoint_url=settings.local_endpoint,
            region_name=LOCAL_REGION,
            aws_access_key_id="dummy",
            aws_secret_access_key="dummy",
        )
    else:
        dynamodb = boto3.resource("dynamodb")
    return dynamodb.Table(settings.table_name)
