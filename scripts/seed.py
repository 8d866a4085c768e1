"""Database seeder for local development of the POS API."""
import argparse
import asyncio
import random
import time

from pos.config import settings
from pos.database import Base, async_session, engine
from pos.models import (
    Cashier,
    Category,
    Merchant,
    Order,
    OrderItem,
    Product,
    Role,
    Transaction,
    User,
    UserRole,
)
from pos.security import PasswordHasher
from pos.utils import slugify

CATEGORIES = ["Beverages", "Snacks", "Bakery", "Dairy", "Frozen", "Household",
              "Personal Care", "Produce", "Stationery", "Electronics"]
PAYMENT_METHODS = ["cash", "debit", "credit", "e-wallet"]


async def seed(small: bool = False):
    num_merchants = 2 if small else 10
    num_products = 50 if small else 2000
    num_orders = 20 if small else 5000

    print(f"Seeding: {num_merchants} merchants, {num_products} products, {num_orders} orders")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    hasher = PasswordHasher()
    async with async_session() as session:
        role = Role(name=settings.DEFAULT_ROLE_NAME)
        session.add_all([role, Role(name="ROLE_CASHIER")])
        await session.flush()

        # One owner (and one cashier) per merchant
        merchants, cashiers = [], []
        for i in range(num_merchants):
            owner = User(
                firstname="Owner",
                lastname=f"{i:03d}",
                email=f"owner_{i:03d}@example.com",
                password=hasher.hash("password"),
            )
            session.add(owner)
            await session.flush()
            session.add(UserRole(user_id=owner.id, role_id=role.id))

            merchant = Merchant(
                user_id=owner.id,
                name=f"Store {i}",
                contact_email=owner.email,
                address=f"{i} Market Street",
            )
            session.add(merchant)
            await session.flush()
            merchants.append(merchant)

            cashier = Cashier(merchant_id=merchant.id, user_id=owner.id, name=f"Cashier {i}")
            session.add(cashier)
            cashiers.append(cashier)
        await session.flush()
        print(f"  Created {len(merchants)} merchants")

        categories = [
            Category(name=name, slug_category=slugify(name), description=f"All things {name.lower()}")
            for name in CATEGORIES
        ]
        session.add_all(categories)
        await session.flush()

        products = []
        for i in range(num_products):
            category = random.choice(categories)
            name = f"{category.name} item {i}"
            product = Product(
                merchant_id=random.choice(merchants).id,
                category_id=category.id,
                name=name,
                slug_product=slugify(name),
                price=random.randint(1, 500) * 1000,
                count_in_stock=random.randint(0, 200),
                barcode=f"{i:013d}",
            )
            session.add(product)
            products.append(product)
        await session.flush()
        print(f"  Created {len(products)} products")

        for _ in range(num_orders):
            cashier = random.choice(cashiers)
            order = Order(merchant_id=cashier.merchant_id, cashier_id=cashier.id)
            session.add(order)
            await session.flush()

            total = 0
            for product in random.sample(products, k=random.randint(1, 4)):
                quantity = random.randint(1, 3)
                total += product.price * quantity
                session.add(OrderItem(
                    order_id=order.id, product_id=product.id, quantity=quantity, price=product.price
                ))
            order.total_price = total
            session.add(Transaction(
                order_id=order.id,
                merchant_id=order.merchant_id,
                payment_method=random.choice(PAYMENT_METHODS),
                amount=total,
                payment_status="success",
            ))
        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the POS database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (50 products)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
