"""Empty every business table and load the demo burger menu."""
from decimal import Decimal

from aws_config import (
    INGREDIENTS_TABLE,
    ORDER_ITEMS_TABLE,
    ORDERS_TABLE,
    PRODUCTS_TABLE,
    RECIPE_LINES_TABLE,
    STOCK_MOVEMENTS_TABLE,
    dynamodb_resource,
)

# -------------------------------
# Setup AWS clients
# -------------------------------
ddb = dynamodb_resource()

# Profiles and Settings are kept
TABLES = [
    ORDERS_TABLE,
    ORDER_ITEMS_TABLE,
    STOCK_MOVEMENTS_TABLE,
    RECIPE_LINES_TABLE,
    PRODUCTS_TABLE,
    INGREDIENTS_TABLE,
]

# (id, name, quantity, minimum, unit)
DEMO_INGREDIENTS = [
    ("pao", "Pão", 100, 20, "un"),
    ("blend-180", "Blend 180g", 50, 10, "un"),
    ("queijo-prato", "Queijo Prato", 200, 40, "fatia"),
    ("bacon", "Bacon", 150, 30, "fatia"),
    ("alface", "Alface", 1, 1, "kg"),
    ("tomate", "Tomate", 1, 1, "kg"),
]

# (id, name, description, price, {ingredient id: quantity})
DEMO_PRODUCTS = [
    ("x-salada", "X-Salada", "O clássico com um toque da casa.", "25.00",
     {"pao": 1, "blend-180": 1, "queijo-prato": 2, "alface": "0.05", "tomate": "0.05"}),
    ("x-bacon", "X-Bacon", "Para os amantes de bacon.", "28.00",
     {"pao": 1, "blend-180": 1, "queijo-prato": 2, "bacon": 3}),
]


def clear_table(table_name):
    table = ddb.Table(table_name)
    print(f"Clearing table: {table_name}")

    # Get primary key names dynamically
    key_names = [k['AttributeName'] for k in table.key_schema]

    # Scan all items, following pagination
    items = []
    response = table.scan()
    items.extend(response.get("Items", []))
    while "LastEvaluatedKey" in response:
        response = table.scan(ExclusiveStartKey=response["LastEvaluatedKey"])
        items.extend(response.get("Items", []))

    # Delete items using correct key(s)
    with table.batch_writer() as batch:
        for item in items:
            batch.delete_item(Key={k: item[k] for k in key_names})
    print(f"Cleared {len(items)} items from {table_name}")


def seed():
    with ddb.Table(INGREDIENTS_TABLE).batch_writer() as batch:
        for ingredient_id, name, qty, min_qty, unit in DEMO_INGREDIENTS:
            batch.put_item(Item={
                "id": ingredient_id, "name": name, "quantity": Decimal(qty),
                "min_quantity": Decimal(min_qty), "unit": unit,
            })
    print(f"Inserted {len(DEMO_INGREDIENTS)} ingredients")

    products = ddb.Table(PRODUCTS_TABLE)
    recipes = ddb.Table(RECIPE_LINES_TABLE)
    for product_id, name, description, price, recipe in DEMO_PRODUCTS:
        products.put_item(Item={
            "id": product_id, "name": name, "description": description,
            "price": Decimal(price), "image_url": "",
        })
        with recipes.batch_writer() as batch:
            for ingredient_id, qty in recipe.items():
                batch.put_item(Item={
                    "product_id": product_id, "ingredient_id": ingredient_id,
                    "quantity": Decimal(str(qty)),
                })
    print(f"Inserted {len(DEMO_PRODUCTS)} products with recipes")


if __name__ == "__main__":
    for table_name in TABLES:
        clear_table(table_name)
    seed()
