"""Storefront database management CLI.

Provides commands to create and drop the schema and to seed demo products.

Usage:
    python src/manage.py setup-db       # Create all tables
    python src/manage.py drop-db        # Drop all tables
    python src/manage.py seed-products  # Insert a few demo products
"""

import argparse
import sys

DEMO_PRODUCTS = [
    {
        "name": "Arctic Mint Pouches",
        "price": 6.49,
        "stock": 120,
        "images": ["https://cdn.example.com/arctic-mint/front.png"],
        "flavors": ["Mint", "Spearmint"],
        "strengths": [3, 6, 12],
    },
    {
        "name": "Citrus Burst Pouches",
        "price": 5.99,
        "stock": 80,
        "images": ["https://cdn.example.com/citrus-burst/front.png"],
        "flavors": ["Lemon", "Orange"],
        "strengths": [0, 3, 6],
    },
    {
        "name": "Original Pouches",
        "price": 4.99,
        "stock": 200,
        "images": [],
    },
]


def _configure():
    from shared.config import Settings
    from shared.domain import configure_domain

    settings = Settings.from_env()
    configure_domain(settings)
    return settings


def setup_db():
    """Create all tables."""
    from shared.domain import setup_database

    settings = _configure()
    print(f"Creating schema at {settings.database_url}...")
    setup_database()
    print("Done.")


def drop_db():
    """Drop all tables."""
    from shared.domain import drop_database

    settings = _configure()
    print(f"Dropping schema at {settings.database_url}...")
    drop_database()
    print("Done.")


def seed_products():
    """Insert the demo products, creating the schema if needed."""
    from catalogue.product.product import Product
    from shared.domain import setup_database, storefront

    _configure()
    setup_database()
    with storefront.domain_context():
        store = storefront.repository_for(Product)
        for data in DEMO_PRODUCTS:
            product = store.add(Product.create(**data))
            print(f"  {product.name} ({product.id}) stock={product.stock}")
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Storefront database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("seed-products", help="Insert demo products")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_db()
    elif args.command == "drop-db":
        drop_db()
    elif args.command == "seed-products":
        seed_products()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
