"""Seed demo customers and orders into the database."""
import asyncio
import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import AsyncSessionLocal
from app.models.customer import Customer
from app.models.order import Order, OrderStatus, PaymentMethod

logger = logging.getLogger(__name__)

# (first_name, last_name, email, phone, city)
DEMO_CUSTOMERS = [
    ("John", "Smith", "john.smith@example.com", "+380501112233", "Kyiv"),
    ("Maria", "Garcia", "maria.garcia@example.com", "+380502223344", "Lviv"),
    ("Oleh", "Kovalenko", "oleh.kovalenko@example.com", "+380503334455", "Odesa"),
]

# (customer email, amount, status, payment method)
DEMO_ORDERS = [
    ("john.smith@example.com", Decimal("100.50"), OrderStatus.NEW, PaymentMethod.CARD),
    ("john.smith@example.com", Decimal("25.00"), OrderStatus.DONE, PaymentMethod.CASH),
    ("maria.garcia@example.com", Decimal("310.99"), OrderStatus.PROCESSING, PaymentMethod.PAYPAL),
    ("oleh.kovalenko@example.com", Decimal("12.40"), OrderStatus.CANCELED, PaymentMethod.APPLE_PAY),
]


async def seed_customers(db: AsyncSession) -> dict[str, Customer]:
    """Insert demo customers that do not exist yet (matched by email)."""
    by_email: dict[str, Customer] = {}
    for first_name, last_name, email, phone, city in DEMO_CUSTOMERS:
        existing = await db.execute(select(Customer).where(Customer.email == email))
        customer = existing.scalars().first()
        if customer is None:
            customer = Customer(first_name=first_name, last_name=last_name, email=email, phone=phone, city=city)
            db.add(customer)
            logger.info("Seeded customer: %s", email)
        else:
            logger.info("Customer already exists: %s, skipping", email)
        by_email[email] = customer
    await db.flush()
    return by_email


async def seed_orders(db: AsyncSession, customers: dict[str, Customer]) -> None:
    """Insert demo orders for customers that have none."""
    for email, customer in customers.items():
        has_orders = await db.execute(select(Order.id).where(Order.customer_id == customer.id).limit(1))
        if has_orders.scalar_one_or_none() is not None:
            continue
        for order_email, amount, status, payment_method in DEMO_ORDERS:
            if order_email != email:
                continue
            db.add(Order(
                customer_id=customer.id,
                amount=amount,
                status=status.value,
                payment_method=payment_method.value,
            ))
            logger.info("Seeded order: %s %s for %s", amount, status.value, email)
    await db.commit()


async def run_seed() -> None:
    async with AsyncSessionLocal() as db:
        customers = await seed_customers(db)
        await seed_orders(db, customers)
    logger.info("Seeding complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_seed())
