import functools
import logging
from decimal import Decimal

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from .base_client import AWSBaseClient
from .exceptions import BackendError, ConditionFailed, ForeignKeyViolation

logger = logging.getLogger(__name__)


def _translate_errors(method):
    """Turn boto errors into BackendError subclasses."""

    @functools.wraps(method)
    def wrapper(self, table, *args, **kwargs):
        try:
            return method(self, table, *args, **kwargs)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "ConditionalCheckFailedException":
                raise ConditionFailed(f"{table}: condition failed") from exc
            logger.warning("DynamoDB %s on %s failed: %s", method.__name__, table, code)
            raise BackendError(f"{table}: {code or exc}", code=code) from exc
        except BotoCoreError as exc:
            logger.warning("DynamoDB %s on %s failed: %s", method.__name__, table, exc)
            raise BackendError(f"{table}: {exc}") from exc

    return wrapper


class DynamoDBClient(AWSBaseClient):
    def __init__(self):
        super().__init__("dynamodb")

    def _deserialize(self, value):
        """Convert DynamoDB data into plain Python types (numbers stay Decimal)."""
        if isinstance(value, dict):
            return {k: self._deserialize(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._deserialize(v) for v in value]
        if isinstance(value, set):
            return {self._deserialize(v) for v in value}
        return value

    def _convert_to_decimal(self, data):
        """Recursively convert ints/floats to Decimal for DynamoDB writes."""
        if isinstance(data, dict):
            return {k: self._convert_to_decimal(v) for k, v in data.items()}
        if isinstance(data, list):
            return [self._convert_to_decimal(v) for v in data]
        if isinstance(data, bool):
            return data
        if isinstance(data, int):
            return Decimal(data)
        if isinstance(data, float):
            return Decimal(str(data))
        return data

# CRUD

    @_translate_errors
    def put(self, table, item, condition=None):
        tbl = self.resource.Table(table)
        params = {"Item": self._convert_to_decimal(item)}
        if condition is not None:
            params["ConditionExpression"] = condition
        return tbl.put_item(**params)

    @_translate_errors
    def get(self, table, key):
        tbl = self.resource.Table(table)
        resp = tbl.get_item(Key=key)
        item = resp.get("Item")
        return self._deserialize(item) if item else {}

    @_translate_errors
    def scan(self, table, **filters):
        """Full-table scan, following pagination. Keyword filters are equality tests."""
        tbl = self.resource.Table(table)
        params = {}
        if filters:
            expression = None
            for name, value in filters.items():
                cond = Attr(name).eq(self._convert_to_decimal(value))
                expression = cond if expression is None else expression & cond
            params["FilterExpression"] = expression

        items = []
        while True:
            resp = tbl.scan(**params)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key
        return [self._deserialize(i) for i in items]

    @_translate_errors
    def query(self, table, key_name, value):
        """All rows sharing a partition key value."""
        tbl = self.resource.Table(table)
        params = {"KeyConditionExpression": Key(key_name).eq(value)}
        items = []
        while True:
            resp = tbl.query(**params)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key
        return [self._deserialize(i) for i in items]

    @_translate_errors
    def update(self, table, key, values, condition=None):
        """
        SET the given attributes on an existing row.
        `condition` is a boto3 condition; the row must exist either way.
        """
        tbl = self.resource.Table(table)
        names = {}
        attr_values = {}
        assignments = []
        for i, (name, value) in enumerate(values.items()):
            names[f"#a{i}"] = name
            attr_values[f":v{i}"] = self._convert_to_decimal(value)
            assignments.append(f"#a{i} = :v{i}")

        exists = Attr(next(iter(key))).exists()
        return tbl.update_item(
            Key=key,
            UpdateExpression="SET " + ", ".join(assignments),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=attr_values,
            ConditionExpression=exists if condition is None else exists & condition,
            ReturnValues="ALL_NEW",
        )

    @_translate_errors
    def delete(self, table, key):
        """
        Delete an item from the DynamoDB table.
        """
        tbl = self.resource.Table(table)
        return tbl.delete_item(Key=key)

    def check_unreferenced(self, table, key, references):
        """
        Raise ForeignKeyViolation if any row points at `key`.

        `references` is a list of (table, attribute) pairs that hold the
        row's id. DynamoDB has no foreign keys, so the check is a scan.
        """
        row_id = next(iter(key.values()))
        for ref_table, attribute in references:
            if self.scan(ref_table, **{attribute: row_id}):
                raise ForeignKeyViolation(table, row_id, ref_table)

    def delete_unreferenced(self, table, key, references):
        """Delete a row only if nothing points at it."""
        self.check_unreferenced(table, key, references)
        return self.delete(table, key)

# batch

    @_translate_errors
    def put_many(self, table, items):
        tbl = self.resource.Table(table)
        with tbl.batch_writer() as batch:
            for item in items:
                batch.put_item(Item=self._convert_to_decimal(item))

    @_translate_errors
    def delete_many(self, table, keys):
        tbl = self.resource.Table(table)
        with tbl.batch_writer() as batch:
            for key in keys:
                batch.delete_item(Key=key)
