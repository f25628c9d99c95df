from app.models.customer import Customer
from app.models.order import Order, OrderStatus, PaymentMethod

__all__ = [
    "Customer",
    "Order", "OrderStatus", "PaymentMethod",
]
