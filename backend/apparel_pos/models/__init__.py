from .catalog import Product
from .customers import Customer
from .orders import Order, OrderLine
from .billing import Bill, BillLine, BillPaymentState, BillPayment
from .documents import DocumentSequence
from .exhibitions import Exhibition

__all__ = [
    'Product',
    'Customer',
    'Order', 'OrderLine',
    'Bill', 'BillLine', 'BillPaymentState', 'BillPayment',
    'DocumentSequence',
    'Exhibition',
]
