# infra_setup.py
from botocore.exceptions import ClientError

from aws_config import (
    AWS_REGION,
    S3_IMAGE_BUCKET,
    SETTINGS_TABLE,
    SNS_LOW_STOCK_TOPIC_NAME,
    TABLE_KEYS,
    dynamodb_resource,
    s3_client,
    sns_client,
)
from pos.models import Settings

# Initialize AWS clients/resources
ddb = dynamodb_resource()
sns = sns_client()
s3 = s3_client()

# key attributes that hold numbers rather than strings
NUMERIC_KEYS = {(SETTINGS_TABLE, "id")}


# --- DynamoDB Tables ---
def create_table(table_name, partition_key, sort_key=None):
    """Create a DynamoDB table if it doesn't exist."""
    try:
        table = ddb.Table(table_name)
        table.load()
        print(f"Table '{table_name}' already exists.")
        return table
    except ClientError as exc:
        if exc.response["Error"]["Code"] != "ResourceNotFoundException":
            raise

    keys = [(partition_key, "HASH")] + ([(sort_key, "RANGE")] if sort_key else [])
    table = ddb.create_table(
        TableName=table_name,
        AttributeDefinitions=[
            {"AttributeName": name, "AttributeType": "N" if (table_name, name) in NUMERIC_KEYS else "S"}
            for name, _ in keys
        ],
        KeySchema=[{"AttributeName": name, "KeyType": kind} for name, kind in keys],
        BillingMode="PAY_PER_REQUEST"
    )
    table.wait_until_exists()
    print(f"Created table '{table_name}' successfully.")
    return table


# --- SNS Topic ---
def create_topic(topic_name):
    resp = sns.create_topic(Name=topic_name)
    print(f"Created SNS topic '{topic_name}': {resp['TopicArn']}")
    return resp['TopicArn']


# --- S3 Bucket ---
def create_bucket(bucket_name, region=AWS_REGION):
    existing_buckets = [b['Name'] for b in s3.list_buckets().get('Buckets', [])]
    if bucket_name in existing_buckets:
        print(f"S3 bucket '{bucket_name}' already exists.")
        return bucket_name

    if region == "us-east-1":
        s3.create_bucket(Bucket=bucket_name)
    else:
        s3.create_bucket(
            Bucket=bucket_name,
            CreateBucketConfiguration={'LocationConstraint': region}
        )
    print(f"Created S3 bucket '{bucket_name}' in region '{region}'.")
    return bucket_name


# --- Settings singleton ---
def create_default_settings():
    table = ddb.Table(SETTINGS_TABLE)
    if "Item" in table.get_item(Key={"id": 1}):
        print("Settings row already exists.")
        return
    table.put_item(Item=Settings().to_item())
    print("Inserted default settings row.")


# --- Main setup ---
if __name__ == "__main__":
    for name, (partition_key, sort_key) in TABLE_KEYS.items():
        create_table(name, partition_key, sort_key)

    TOPIC_ARN = create_topic(SNS_LOW_STOCK_TOPIC_NAME)
    BUCKET_NAME = create_bucket(S3_IMAGE_BUCKET)
    create_default_settings()

    print("\nInfrastructure setup completed successfully.")
    print(f"SNS Topic ARN: {TOPIC_ARN}")
    print(f"S3 Bucket Name: {BUCKET_NAME}")
