# tests/conftest.py
import json
from dataclasses import dataclass
from typing import Optional

import boto3
import pytest
from moto import mock_aws

TABLE_NAME = "CleanServerlessTestTable"


@dataclass
class FakeLambdaContext:
    function_name: str = "clean-serverless-test"
    memory_limit_in_mb: int = 1280
    invoked_function_arn: str = "arn:aws:lambda:ap-northeast-1:123456789012:function:clean-serverless-test"
    aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"


@pytest.fixture()
def lambda_context() -> FakeLambdaContext:
    return FakeLambdaContext()


@pytest.fixture()
def aws_credentials(monkeypatch) -> None:
    '''Mocked AWS Credentials for moto.'''
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "ap-northeast-1")


@pytest.fixture()
def mocked_aws(aws_credentials):
    '''Mock all AWS interactions'''
    with mock_aws():
        yield


@pytest.fixture()
def resource_table(mocked_aws, monkeypatch):
    """Creates the single resource table in moto and points the api handler at it."""
    from lambdas.api import settings

    monkeypatch.setenv("DYNAMO_TABLE_NAME", TABLE_NAME)
    monkeypatch.setenv("DYNAMO_PK_NAME", "PK")
    monkeypatch.setenv("DYNAMO_SK_NAME", "SK")
    monkeypatch.delenv("DYNAMO_LOCAL_ENDPOINT", raising=False)

    dynamodb = boto3.resource("dynamodb")
    table = dynamodb.create_table(
        TableName=TABLE_NAME,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    table.wait_until_exists()

    # Cached clients must be created inside the mock
    settings.get_settings.cache_clear()
    settings.get_dynamodb_table.cache_clear()
    yield table
    settings.get_settings.cache_clear()
    settings.get_dynamodb_table.cache_clear()


def api_event(method: str, path: str, body: Optional[dict] = None, raw_body: Optional[str] = None) -> dict:
    """Builds a REST API (v1) Lambda proxy event."""
    if raw_body is None and body is not None:
        raw_body = json.dumps(body)
    return {
        "resource": path,
        "path": path,
        "httpMethod": method,
        "headers": {"Content-Type": "application/json"},
        "multiValueHeaders": {"Content-Type": ["application/json"]},
        "queryStringParameters": None,
        "multiValueQueryStringParameters": None,
        "pathParameters": None,
        "stageVariables": None,
        "requestContext": {
            "accountId": "123456789012",
            "apiId": "abcdef1234",
            "httpMethod": method,
            "path": f"/dev{path}",
            "protocol": "HTTP/1.1",
            "requestId": "c6af9ac6-7b61-11e6-9a41-93e8deadbeef",
            "resourcePath": path,
            "stage": "dev",
            "identity": {"sourceIp": "127.0.0.1"},
        },
        "body": raw_body,
        "isBase64Encoded": False,
    }
