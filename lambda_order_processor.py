"""
Order-processing Lambda.

Inserts an order, its items and the recipe-derived ingredient depletion as
one DynamoDB transaction, so stock is never deducted without an order (or
the other way round). Invoked synchronously by the web app.

Event:
    {"customer_name": str, "total": "78.00",
     "items": [{"product_id": str, "quantity": int, "unit_price": "25.00"}]}
"""
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal

from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from aws_config import (
    INGREDIENTS_TABLE,
    ORDER_ITEMS_TABLE,
    ORDERS_TABLE,
    PRODUCTS_TABLE,
    RECIPE_LINES_TABLE,
    dynamodb_client,
    dynamodb_resource,
    get_sns_topic_arn,
    sns_client,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# DynamoDB caps a transaction at 100 actions
MAX_TRANSACTION_ITEMS = 100

# AWS Clients
dynamodb = dynamodb_resource()
ddb_client = dynamodb_client()
sns = sns_client()

serializer = TypeSerializer()


class OrderRejected(Exception):
    def __init__(self, error, detail=""):
        super().__init__(detail or error)
        self.error = error


def _typed(item):
    return {k: serializer.serialize(v) for k, v in item.items()}


def lambda_handler(event, context):
    logger.info("Received order for %r", event.get("customer_name"))
    try:
        order_id = process_order(
            event.get("customer_name", ""),
            Decimal(str(event.get("total", "0"))),
            event.get("items", []),
        )
    except OrderRejected as exc:
        logger.warning("Order rejected: %s", exc)
        return {"ok": False, "error": exc.error, "detail": str(exc)}
    return {"ok": True, "order_id": order_id}


def consumption(items):
    """
    Aggregate recipe consumption per ingredient for the ordered lines.
    Returns {ingredient_id: Decimal}.
    """
    products_table = dynamodb.Table(PRODUCTS_TABLE)
    recipes_table = dynamodb.Table(RECIPE_LINES_TABLE)

    needed = defaultdict(Decimal)
    for line in items:
        product_id = line["product_id"]
        if "Item" not in products_table.get_item(Key={"id": product_id}):
            raise OrderRejected("unknown_product", f"Product {product_id} not found")

        recipe = recipes_table.query(
            KeyConditionExpression=Key("product_id").eq(product_id)
        ).get("Items", [])
        for row in recipe:
            needed[row["ingredient_id"]] += Decimal(row["quantity"]) * int(line["quantity"])
    return needed


def process_order(customer_name, total, items):
    if not items or any(int(line["quantity"]) <= 0 for line in items):
        raise OrderRejected("invalid_order", "Order has no valid lines")
    product_ids = [line["product_id"] for line in items]
    if len(set(product_ids)) != len(product_ids):
        raise OrderRejected("invalid_order", "Each product may appear on one line only")

    needed = consumption(items)
    order_id = str(uuid.uuid4())
    created_at = datetime.now(timezone.utc).isoformat()

    actions = [{
        "Put": {
            "TableName": ORDERS_TABLE,
            "Item": _typed({
                "id": order_id,
                "customer_name": customer_name,
                "status": "Pending",
                "total": total,
                "created_at": created_at,
            }),
        }
    }]
    for line in items:
        actions.append({
            "Put": {
                "TableName": ORDER_ITEMS_TABLE,
                "Item": _typed({
                    "order_id": order_id,
                    "product_id": line["product_id"],
                    "quantity": int(line["quantity"]),
                    "unit_price": Decimal(str(line["unit_price"])),
                }),
            }
        })
    for ingredient_id, amount in needed.items():
        actions.append({
            "Update": {
                "TableName": INGREDIENTS_TABLE,
                "Key": _typed({"id": ingredient_id}),
                "UpdateExpression": "SET #q = #q - :n",
                "ConditionExpression": "attribute_exists(#id) AND #q >= :n",
                "ExpressionAttributeNames": {"#q": "quantity", "#id": "id"},
                "ExpressionAttributeValues": {":n": serializer.serialize(amount)},
                "ReturnValuesOnConditionCheckFailure": "ALL_OLD",
            }
        })

    if len(actions) > MAX_TRANSACTION_ITEMS:
        raise OrderRejected("order_too_large", f"{len(actions)} writes in one order")

    try:
        ddb_client.transact_write_items(TransactItems=actions, ClientRequestToken=order_id)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") == "TransactionCanceledException":
            raise cancellation_reason(exc.response.get("CancellationReasons", [])) from exc
        raise

    logger.info("Order %s stored with %d lines", order_id, len(items))
    alert_low_stock(needed.keys())
    return order_id


def cancellation_reason(reasons):
    """
    Map TransactWriteItems cancellation reasons to an OrderRejected.

    A failed stock condition returns the old item; a missing ingredient
    row returns none.
    """
    failed = [r for r in reasons if r.get("Code") == "ConditionalCheckFailed"]
    if any("Item" in r for r in failed):
        return OrderRejected("insufficient_stock", "Not enough stock for this order")
    if failed:
        return OrderRejected("unknown_ingredient", "A recipe uses an ingredient that no longer exists")
    if any(r.get("Code") == "TransactionConflict" for r in reasons):
        return OrderRejected("conflict", "Stock changed while the order was being placed")
    codes = ", ".join(sorted({r.get("Code", "") for r in reasons} - {"None"})) or "unknown"
    return OrderRejected("transaction_cancelled", f"Order was not stored ({codes})")


def alert_low_stock(ingredient_ids):
    """Publish one SNS alert per ingredient now at or below its minimum."""
    table = dynamodb.Table(INGREDIENTS_TABLE)
    try:
        low = []
        for ingredient_id in ingredient_ids:
            item = table.get_item(Key={"id": ingredient_id}).get("Item")
            if item and item["quantity"] <= item.get("min_quantity", 0):
                low.append(item)
        if not low:
            return
        topic_arn = get_sns_topic_arn()
        for item in low:
            sns.publish(
                TopicArn=topic_arn,
                Subject="Low Stock Alert",
                Message=f"Low stock alert: {item['name']} has qty {item['quantity']} {item.get('unit', '')}".strip(),
            )
    except (ClientError, BotoCoreError):
        logger.exception("Low stock alert failed")
