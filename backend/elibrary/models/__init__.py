from .auth import User, SessionToken
from .catalog import Book, BookIssue
from .printing import PrintJob, Payment
from .security import SecurityEvent

__all__ = [
    'User', 'SessionToken',
    'Book', 'BookIssue',
    'PrintJob', 'Payment',
    'SecurityEvent',
]
