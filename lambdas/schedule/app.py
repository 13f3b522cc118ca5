# lambdas/schedule/app.py
"""Invoked by the EventBridge rule every five minutes."""
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

LOGGER = Logger(service="schedule", utc=True)

DEFAULT_ACTION = "scheduled"


@LOGGER.inject_lambda_context
def handler(event: dict, context: LambdaContext) -> dict:
    '''Event handler'''
    # Scheduled events carry no payload of their own; a manual invoke may pass {"action": ...}
    action = (event or {}).get("action") or DEFAULT_ACTION
    LOGGER.info("Schedule triggered", extra={
        "action": action,
        "source": (event or {}).get("source"),
        "time": (event or {}).get("time"),
    })
    return {"action": action}
