from whatsapp_accounting.models.customer import Customer
from whatsapp_accounting.models.payment import Payment, PaymentDirection
from whatsapp_accounting.models.processed_message import ProcessedMessage

__all__ = ["Customer", "Payment", "PaymentDirection", "ProcessedMessage"]
