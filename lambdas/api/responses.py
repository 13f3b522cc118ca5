# lambdas/api/responses.py
import json
from typing import Optional

from aws_lambda_powertools.event_handler import Response, content_types

COMMON_HEADERS = {"Access-Control-Allow-Origin": "*"}


def build_response(status_code: int, body: dict) -> Response:
    """Helper function to build the API Gateway proxy response."""
    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(body),
        headers=dict(COMMON_HEADERS),
    )


def ok(body: Optional[dict] = None) -> Response:
    return build_response(200, body if body is not None else {"message": "OK"})


def created(resource_id: int) -> Response:
    return build_response(201, {"message": "OK", "id": str(resource_id)})


def bad_request(message: str, errors: Optional[dict] = None) -> Response:
    return build_response(400, {"message": message, "errors": errors or {}})


def not_found() -> Response:
    return build_response(404, {"message": "No result was found."})


def server_error() -> Response:
    # Internal details stay in the logs
    return build_response(500, {"message": "An internal server error occurred."})
