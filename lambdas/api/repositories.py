# lambdas/api/repositories.py
"""
Single-table storage for users and microposts.

Every item lives in the one resource table, addressed by the configured
partition/sort key attributes:

    sequence           | user / micropost   atomic ID counters
    user               | user_<id>          user records
    user_email         | <email>            uniqueness guard for emails
    micropost_user_<id>| micropost_<id>     a user's microposts

Listing a user's microposts is a Query on one partition, so no secondary
index is needed.
"""
from typing import Iterator, List, Optional

from aws_lambda_powertools import Logger
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .exceptions import DuplicateEmailError, NotFoundError

LOGGER = Logger(service="api", child=True)

SEQUENCE_PARTITION = "sequence"
USER_PARTITION = "user"
USER_EMAIL_PARTITION = "user_email"


class ResourceTable:
    """Thin wrapper binding a boto3 Table to its key attribute names."""

    def __init__(self, table, pk_name: str, sk_name: str):
        self.table = table
        self.pk_name = pk_name
        self.sk_name = sk_name

    def key(self, pk: str, sk: str) -> dict:
        return {self.pk_name: pk, self.sk_name: sk}

    def get(self, pk: str, sk: str) -> Optional[dict]:
        response = self.table.get_item(Key=self.key(pk, sk))
        return response.get("Item")

    def put(self, pk: str, sk: str, attributes: dict) -> None:
        self.table.put_item(Item={**self.key(pk, sk), **attributes})

    def delete(self, pk: str, sk: str) -> None:
        self.table.delete_item(Key=self.key(pk, sk))

    def put_request(self, pk: str, sk: str, attributes: dict, unique: bool = False) -> dict:
        """
        Builds a transactional Put. With unique=True the whole transaction is
        cancelled if the key already exists.
        """
        request = {"TableName": self.table.name, "Item": {**self.key(pk, sk), **attributes}}
        if unique:
            request["ConditionExpression"] = "attribute_not_exists(#pk)"
            request["ExpressionAttributeNames"] = {"#pk": self.pk_name}
        return {"Put": request}

    def delete_request(self, pk: str, sk: str) -> dict:
        return {"Delete": {"TableName": self.table.name, "Key": self.key(pk, sk)}}

    def write_all(self, requests: List[dict]) -> None:
        """Applies every request in one transaction, or none of them."""
        self.table.meta.client.transact_write_items(TransactItems=requests)

    def query_partition(self, pk: str) -> Iterator[dict]:
        kwargs = {"KeyConditionExpression": Key(self.pk_name).eq(pk)}
        while True:
            response = self.table.query(**kwargs)
            yield from response.get("Items", [])
            if "LastEvaluatedKey" not in response:
                return
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    def next_id(self, kind: str) -> int:
        """Atomically increments and returns the counter for the given kind of record."""
        response = self.table.update_item(
            Key=self.key(SEQUENCE_PARTITION, kind),
            UpdateExpression="ADD #current :one",
            ExpressionAttributeNames={"#current": "current_id"},
            ExpressionAttributeValues={":one": 1},
            ReturnValues="UPDATED_NEW",
        )
        return int(response["Attributes"]["current_id"])


def _is_cancelled_by_condition(error: ClientError) -> bool:
    if error.response["Error"]["Code"] != "TransactionCanceledException":
        return False
    reasons = error.response.get("CancellationReasons", [])
    return any(reason.get("Code") == "ConditionalCheckFailed" for reason in reasons)


def _user_sk(user_id: int) -> str:
    return f"user_{user_id}"


def _micropost_pk(user_id: int) -> str:
    return f"micropost_user_{user_id}"


def _micropost_sk(micropost_id: int) -> str:
    return f"micropost_{micropost_id}"


def _to_user(item: dict) -> dict:
    return {"id": int(item["id"]), "user_name": item["user_name"], "email": item["email"]}


def _to_micropost(item: dict) -> dict:
    return {"id": int(item["id"]), "user_id": int(item["user_id"]), "content": item["content"]}


class UserRepository:

    def __init__(self, resource_table: ResourceTable):
        self.resource_table = resource_table

    def _save(self, user_id: int, user_name: str, email: str, previous_email: Optional[str] = None) -> None:
        """
        Writes the user record and its email guard in one transaction.

        Raises:
            DuplicateEmailError: If another user already holds the address.
        """
        requests = []
        if email != previous_email:
            requests.append(self.resource_table.put_request(
                USER_EMAIL_PARTITION, email, {"user_id": user_id}, unique=True))
            if previous_email is not None:
                requests.append(self.resource_table.delete_request(USER_EMAIL_PARTITION, previous_email))
        requests.append(self.resource_table.put_request(USER_PARTITION, _user_sk(user_id), {
            "id": user_id,
            "user_name": user_name,
            "email": email,
        }))
        try:
            self.resource_table.write_all(requests)
        except ClientError as e:
            if _is_cancelled_by_condition(e):
                raise DuplicateEmailError(email)
            raise

    def create(self, user_name: str, email: str) -> int:
        user_id = self.resource_table.next_id("user")
        self._save(user_id, user_name, email)
        LOGGER.info("Created user", extra={"user_id": user_id})
        return user_id

    def get(self, user_id: int) -> dict:
        item = self.resource_table.get(USER_PARTITION, _user_sk(user_id))
        if item is None:
            raise NotFoundError(f"User {user_id} not found")
        return _to_user(item)

    def list(self) -> List[dict]:
        users = [_to_user(item) for item in self.resource_table.query_partition(USER_PARTITION)]
        return sorted(users, key=lambda user: user["id"])

    def update(self, user_id: int, user_name: str, email: str) -> None:
        current = self.get(user_id)
        self._save(user_id, user_name, email, previous_email=current["email"])
        LOGGER.info("Updated user", extra={"user_id": user_id})

    def delete(self, user_id: int) -> None:
        """Deletes the user, its email guard and all of its microposts."""
        current = self.get(user_id)
        micropost_pk = _micropost_pk(user_id)
        with self.resource_table.table.batch_writer() as batch:
            for item in self.resource_table.query_partition(micropost_pk):
                batch.delete_item(Key=self.resource_table.key(micropost_pk, item[self.resource_table.sk_name]))
        self.resource_table.write_all([
            self.resource_table.delete_request(USER_EMAIL_PARTITION, current["email"]),
            self.resource_table.delete_request(USER_PARTITION, _user_sk(user_id)),
        ])
        LOGGER.info("Deleted user", extra={"user_id": user_id})


class MicropostRepository:

    def __init__(self, resource_table: ResourceTable, users: UserRepository):
        self.resource_table = resource_table
        self.users = users

    def create(self, user_id: int, content: str) -> int:
        # Raises NotFoundError for an unknown user
        self.users.get(user_id)
        micropost_id = self.resource_table.next_id("micropost")
        self.resource_table.put(_micropost_pk(user_id), _micropost_sk(micropost_id), {
            "id": micropost_id,
            "user_id": user_id,
            "content": content,
        })
        LOGGER.info("Created micropost", extra={"user_id": user_id, "micropost_id": micropost_id})
        return micropost_id

    def get(self, user_id: int, micropost_id: int) -> dict:
        item = self.resource_table.get(_micropost_pk(user_id), _micropost_sk(micropost_id))
        if item is None:
            raise NotFoundError(f"Micropost {micropost_id} of user {user_id} not found")
        return _to_micropost(item)

    def list(self, user_id: int) -> List[dict]:
        microposts = [_to_micropost(item) for item in self.resource_table.query_partition(_micropost_pk(user_id))]
        return sorted(microposts, key=lambda micropost: micropost["id"])

    def update(self, user_id: int, micropost_id: int, content: str) -> None:
        self.get(user_id, micropost_id)
        self.resource_table.put(_micropost_pk(user_id), _micropost_sk(micropost_id), {
            "id": micropost_id,
            "user_id": user_id,
            "content": content,
        })

    def delete(self, user_id: int, micropost_id: int) -> None:
        self.get(user_id, micropost_id)
        self.resource_table.delete(_micropost_pk(user_id), _micropost_sk(micropost_id))
