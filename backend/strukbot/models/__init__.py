from strukbot.models.store import Region, Store
from strukbot.models.user import Role, User, user_store_access
from strukbot.models.transaction import Transaction, TransactionItem

__all__ = ["Region", "Store", "Role", "User", "user_store_access", "Transaction", "TransactionItem"]
