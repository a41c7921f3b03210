# aws_config.py
import os

import boto3
from botocore.config import Config

# -----------------------------
# AWS region & boto3 config
# -----------------------------
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

# Every failure is terminal for the user action, so boto3 must not retry.
boto3_config = Config(
    region_name=AWS_REGION,
    retries={"max_attempts": 1, "mode": "standard"}
)

# -----------------------------
# Backend resource names
# -----------------------------
INGREDIENTS_TABLE = os.getenv("DDB_INGREDIENTS_TABLE", "Ingredients")
PRODUCTS_TABLE = os.getenv("DDB_PRODUCTS_TABLE", "Products")
RECIPE_LINES_TABLE = os.getenv("DDB_RECIPE_LINES_TABLE", "RecipeLines")
ORDERS_TABLE = os.getenv("DDB_ORDERS_TABLE", "Orders")
ORDER_ITEMS_TABLE = os.getenv("DDB_ORDER_ITEMS_TABLE", "OrderItems")
STOCK_MOVEMENTS_TABLE = os.getenv("DDB_STOCK_MOVEMENTS_TABLE", "StockMovements")
SETTINGS_TABLE = os.getenv("DDB_SETTINGS_TABLE", "Settings")
PROFILES_TABLE = os.getenv("DDB_PROFILES_TABLE", "Profiles")

# partition key, optional sort key
TABLE_KEYS = {
    INGREDIENTS_TABLE: ("id", None),
    PRODUCTS_TABLE: ("id", None),
    RECIPE_LINES_TABLE: ("product_id", "ingredient_id"),
    ORDERS_TABLE: ("id", None),
    ORDER_ITEMS_TABLE: ("order_id", "product_id"),
    STOCK_MOVEMENTS_TABLE: ("id", None),
    SETTINGS_TABLE: ("id", None),
    PROFILES_TABLE: ("id", None),
}

S3_IMAGE_BUCKET = os.getenv("S3_IMAGE_BUCKET", "cloudpos-images")
ORDER_PROCESSOR_FUNCTION = os.getenv("ORDER_PROCESSOR_FUNCTION", "cloudpos-process-order")
SNS_LOW_STOCK_TOPIC_NAME = os.getenv("SNS_LOW_STOCK_TOPIC_NAME", "cloudpos-low-stock")


# -----------------------------
# AWS clients/resources
# -----------------------------
def dynamodb_resource():
    return boto3.resource("dynamodb", region_name=AWS_REGION, config=boto3_config)

def dynamodb_client():
    return boto3.client("dynamodb", region_name=AWS_REGION, config=boto3_config)

def s3_client():
    return boto3.client("s3", region_name=AWS_REGION, config=boto3_config)

def sns_client():
    return boto3.client("sns", region_name=AWS_REGION, config=boto3_config)


def get_sns_topic_arn():
    sns = sns_client()
    # Check if topic exists
    next_token = None
    while True:
        resp = sns.list_topics(NextToken=next_token) if next_token else sns.list_topics()
        for t in resp.get("Topics", []):
            if t["TopicArn"].endswith(":" + SNS_LOW_STOCK_TOPIC_NAME):
                return t["TopicArn"]
        next_token = resp.get("NextToken")
        if not next_token:
            break
    # Topic does not exist → create it
    resp = sns.create_topic(Name=SNS_LOW_STOCK_TOPIC_NAME)
    return resp["TopicArn"]
