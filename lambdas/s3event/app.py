# lambdas/s3event/app.py
"""Handles object-created and object-removed notifications from the resource bucket."""
from typing import List
from urllib.parse import unquote_plus

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.data_classes import S3Event, event_source
from aws_lambda_powertools.utilities.typing import LambdaContext

LOGGER = Logger(service="s3event", utc=True)


def classify_event(event_name: str) -> str:
    """Maps an S3 event name such as 'ObjectCreated:Put' to 'created' or 'removed'."""
    if event_name.startswith("ObjectCreated:"):
        return "created"
    if event_name.startswith("ObjectRemoved:"):
        return "removed"
    raise ValueError(f"Unsupported S3 event: {event_name}")


def process_event(event: S3Event) -> List[dict]:
    results = []
    for record in event.records:
        kind = classify_event(record.event_name)
        bucket = record.s3.bucket.name
        # Keys arrive URL-encoded with '+' for spaces
        key = unquote_plus(record.s3.get_object.key)

        if kind == "created":
            LOGGER.info("Object created", extra={"bucket": bucket, "key": key, "size": record.s3.get_object.size})
        else:
            LOGGER.info("Object removed", extra={"bucket": bucket, "key": key})
        results.append({"event": kind, "bucket": bucket, "key": key})
    return results


@LOGGER.inject_lambda_context
@event_source(data_class=S3Event)
def handler(event: S3Event, context: LambdaContext) -> List[dict]:
    '''Event handler'''
    LOGGER.debug("Event", extra={"message_object": event.raw_event})
    return process_event(event)
