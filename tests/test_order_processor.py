"""
Tests for the order-processing Lambda, with DynamoDB and SNS mocked.
"""
from decimal import Decimal
from unittest import mock

import pytest
from botocore.exceptions import ClientError

import lambda_order_processor as processor
from aws_config import INGREDIENTS_TABLE, PRODUCTS_TABLE, RECIPE_LINES_TABLE

RECIPES = {
    "x-salada": [
        {"product_id": "x-salada", "ingredient_id": "pao", "quantity": Decimal("1")},
        {"product_id": "x-salada", "ingredient_id": "queijo", "quantity": Decimal("2")},
    ],
    "x-bacon": [
        {"product_id": "x-bacon", "ingredient_id": "pao", "quantity": Decimal("1")},
        {"product_id": "x-bacon", "ingredient_id": "bacon", "quantity": Decimal("3")},
    ],
}

STOCK_AFTER = {
    "pao": {"id": "pao", "name": "Pão", "quantity": Decimal("5"), "min_quantity": Decimal("20"), "unit": "un"},
    "queijo": {"id": "queijo", "name": "Queijo", "quantity": Decimal("100"), "min_quantity": Decimal("40")},
    "bacon": {"id": "bacon", "name": "Bacon", "quantity": Decimal("90"), "min_quantity": Decimal("30")},
}

EVENT = {
    "customer_name": "Ana",
    "total": "78.00",
    "items": [
        {"product_id": "x-salada", "quantity": 2, "unit_price": "25.00"},
        {"product_id": "x-bacon", "quantity": 1, "unit_price": "28.00"},
    ],
}


@pytest.fixture
def aws(monkeypatch):
    products = mock.MagicMock()
    products.get_item.side_effect = lambda Key: (
        {"Item": {"id": Key["id"]}} if Key["id"] in RECIPES else {}
    )
    recipes = mock.MagicMock()
    recipes.query.side_effect = lambda KeyConditionExpression: {
        "Items": RECIPES[KeyConditionExpression.get_expression()["values"][1]]
    }
    ingredients = mock.MagicMock()
    ingredients.get_item.side_effect = lambda Key: {"Item": STOCK_AFTER[Key["id"]]}

    tables = {PRODUCTS_TABLE: products, RECIPE_LINES_TABLE: recipes, INGREDIENTS_TABLE: ingredients}
    dynamodb = mock.MagicMock()
    dynamodb.Table.side_effect = tables.__getitem__

    ddb_client = mock.MagicMock()
    sns = mock.MagicMock()
    monkeypatch.setattr(processor, "dynamodb", dynamodb)
    monkeypatch.setattr(processor, "ddb_client", ddb_client)
    monkeypatch.setattr(processor, "sns", sns)
    monkeypatch.setattr(processor, "get_sns_topic_arn", lambda: "arn:aws:sns:us-east-1:1:low-stock")
    return mock.Mock(ddb_client=ddb_client, sns=sns)


def actions(aws):
    return aws.ddb_client.transact_write_items.call_args.kwargs["TransactItems"]


def test_order_items_and_depletion_in_one_transaction(aws):
    result = processor.lambda_handler(EVENT, None)

    assert result["ok"] is True
    aws.ddb_client.transact_write_items.assert_called_once()
    writes = actions(aws)
    puts = [a["Put"] for a in writes if "Put" in a]
    updates = {a["Update"]["Key"]["id"]["S"]: a["Update"] for a in writes if "Update" in a}

    order = puts[0]["Item"]
    assert order["status"] == {"S": "Pending"}
    assert order["total"] == {"N": "78.00"}
    assert order["id"] == {"S": result["order_id"]}
    assert len(puts) == 3

    # aggregated across lines: 2x salada + 1x bacon
    assert updates["pao"]["ExpressionAttributeValues"] == {":n": {"N": "3"}}
    assert updates["queijo"]["ExpressionAttributeValues"] == {":n": {"N": "4"}}
    assert updates["bacon"]["ExpressionAttributeValues"] == {":n": {"N": "3"}}
    assert "#q >= :n" in updates["pao"]["ConditionExpression"]


def cancelled(*reasons):
    return ClientError(
        {
            "Error": {"Code": "TransactionCanceledException", "Message": "cancelled"},
            "CancellationReasons": list(reasons),
        },
        "TransactWriteItems",
    )


def test_insufficient_stock_cancels_everything(aws):
    aws.ddb_client.transact_write_items.side_effect = cancelled(
        {"Code": "None"},
        {"Code": "ConditionalCheckFailed", "Item": {"id": {"S": "bacon"}, "quantity": {"N": "2"}}},
    )

    result = processor.lambda_handler(EVENT, None)

    assert result == {"ok": False, "error": "insufficient_stock", "detail": "Not enough stock for this order"}
    aws.sns.publish.assert_not_called()


def test_stock_check_returns_the_old_item(aws):
    processor.lambda_handler(EVENT, None)

    updates = [a["Update"] for a in actions(aws) if "Update" in a]
    assert {u["ReturnValuesOnConditionCheckFailure"] for u in updates} == {"ALL_OLD"}


@pytest.mark.parametrize("reasons,error", [
    ([{"Code": "None"}, {"Code": "ConditionalCheckFailed"}], "unknown_ingredient"),
    ([{"Code": "TransactionConflict"}, {"Code": "None"}], "conflict"),
    ([{"Code": "ThrottlingError"}], "transaction_cancelled"),
    ([], "transaction_cancelled"),
])
def test_other_cancellations_are_not_reported_as_stock(aws, reasons, error):
    aws.ddb_client.transact_write_items.side_effect = cancelled(*reasons)

    result = processor.lambda_handler(EVENT, None)

    assert result["ok"] is False
    assert result["error"] == error
    aws.sns.publish.assert_not_called()


def test_unknown_product(aws):
    event = dict(EVENT, items=[{"product_id": "x-egg", "quantity": 1, "unit_price": "20.00"}])

    result = processor.lambda_handler(event, None)

    assert result["error"] == "unknown_product"
    aws.ddb_client.transact_write_items.assert_not_called()


@pytest.mark.parametrize("items", [
    [],
    [{"product_id": "x-bacon", "quantity": 0, "unit_price": "28.00"}],
    [{"product_id": "x-bacon", "quantity": 1, "unit_price": "28.00"}] * 2,
])
def test_invalid_orders(aws, items):
    result = processor.lambda_handler(dict(EVENT, items=items), None)
    assert result["error"] == "invalid_order"


def test_low_stock_alert_after_depletion(aws):
    processor.lambda_handler(EVENT, None)

    aws.sns.publish.assert_called_once()
    assert "Pão" in aws.sns.publish.call_args.kwargs["Message"]


def test_logger_is_configured_by_the_project_logging(settings):
    assert processor.logger.name == "lambda_order_processor"
    assert processor.logger.name in settings.LOGGING["loggers"]
