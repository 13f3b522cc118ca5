# lambdas/api/app.py
"""
Handler for the api image target.

Every API Gateway route in the stack points at its own function, but all of
them run this same router and dispatch on the request path and method.
"""
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response
from aws_lambda_powertools.utilities.typing import LambdaContext

from . import responses
from .exceptions import DuplicateEmailError, InvalidRequestError, NotFoundError
from .repositories import MicropostRepository, ResourceTable, UserRepository
from .request_parser import (
    parse_hello_request,
    parse_id,
    parse_micropost_request,
    parse_user_request,
)
from .settings import get_dynamodb_table, get_settings

LOGGER = Logger(service="api", utc=True)
app = APIGatewayRestResolver()


def _resource_table() -> ResourceTable:
    settings = get_settings()
    return ResourceTable(get_dynamodb_table(), settings.pk_name, settings.sk_name)


def _users() -> UserRepository:
    return UserRepository(_resource_table())


def _microposts() -> MicropostRepository:
    resource_table = _resource_table()
    return MicropostRepository(resource_table, UserRepository(resource_table))


# Error mapping

@app.exception_handler(InvalidRequestError)
def handle_invalid_request(ex: InvalidRequestError) -> Response:
    LOGGER.warning("Validation failed", extra={"errors": ex.errors, "reason": str(ex)})
    return responses.bad_request(str(ex), ex.errors)


@app.exception_handler(DuplicateEmailError)
def handle_duplicate_email(ex: DuplicateEmailError) -> Response:
    LOGGER.warning("Email already registered", extra={"email": ex.email})
    return responses.bad_request(
        "Please check the input values.",
        {"email": "is already registered"},
    )


@app.exception_handler(NotFoundError)
def handle_not_found(ex: NotFoundError) -> Response:
    LOGGER.info(str(ex))
    return responses.not_found()


@app.exception_handler(Exception)
def handle_unexpected(ex: Exception) -> Response:
    LOGGER.exception("Internal server error")
    return responses.server_error()


@app.not_found
def handle_unknown_route(ex) -> Response:
    return responses.not_found()


# Hello

@app.post("/v1/hello")
def post_hello() -> Response:
    name = parse_hello_request(app.current_event.body)
    return responses.ok({"message": f"Hello!{name}"})


# Users

@app.post("/v1/users")
def post_users() -> Response:
    user_name, email = parse_user_request(app.current_event.body)
    user_id = _users().create(user_name, email)
    return responses.created(user_id)


@app.get("/v1/users")
def get_users() -> Response:
    return responses.ok({"users": _users().list()})


@app.get("/v1/users/<user_id>")
def get_user(user_id: str) -> Response:
    return responses.ok(_users().get(parse_id(user_id, "user_id")))


@app.put("/v1/users/<user_id>")
def put_user(user_id: str) -> Response:
    parsed_id = parse_id(user_id, "user_id")
    user_name, email = parse_user_request(app.current_event.body)
    _users().update(parsed_id, user_name, email)
    return responses.ok()


@app.delete("/v1/users/<user_id>")
def delete_user(user_id: str) -> Response:
    _users().delete(parse_id(user_id, "user_id"))
    return responses.ok()


# Microposts

@app.post("/v1/users/<user_id>/microposts")
def post_microposts(user_id: str) -> Response:
    parsed_id = parse_id(user_id, "user_id")
    content = parse_micropost_request(app.current_event.body)
    micropost_id = _microposts().create(parsed_id, content)
    return responses.created(micropost_id)


@app.get("/v1/users/<user_id>/microposts")
def get_microposts(user_id: str) -> Response:
    microposts = _microposts().list(parse_id(user_id, "user_id"))
    LOGGER.info("Listed microposts", extra={"count": len(microposts)})
    return responses.ok({"microposts": microposts})


@app.get("/v1/users/<user_id>/microposts/<micropost_id>")
def get_micropost(user_id: str, micropost_id: str) -> Response:
    micropost = _microposts().get(parse_id(user_id, "user_id"), parse_id(micropost_id, "micropost_id"))
    return responses.ok(micropost)


@app.put("/v1/users/<user_id>/microposts/<micropost_id>")
def put_micropost(user_id: str, micropost_id: str) -> Response:
    parsed_user_id = parse_id(user_id, "user_id")
    parsed_micropost_id = parse_id(micropost_id, "micropost_id")
    content = parse_micropost_request(app.current_event.body)
    _microposts().update(parsed_user_id, parsed_micropost_id, content)
    return responses.ok()


@app.delete("/v1/users/<user_id>/microposts/<micropost_id>")
def delete_micropost(user_id: str, micropost_id: str) -> Response:
    _microposts().delete(parse_id(user_id, "user_id"), parse_id(micropost_id, "micropost_id"))
    return responses.ok()


@LOGGER.inject_lambda_context
def handler(event: dict, context: LambdaContext) -> dict:
    """API Gateway proxy handler."""
    return app.resolve(event, context)
