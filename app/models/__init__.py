from app.models.user import User
from app.models.group import Group
from app.models.group_member import GroupMember
from app.models.expense import Expense
from app.models.expense_payer import ExpensePayer
from app.models.expense_split import ExpenseSplit
from app.models.settlement import Settlement
from app.models.friend_expense import FriendExpense

__all__ = [
    "User",
    "Group",
    "GroupMember",
    "Expense",
    "ExpensePayer",
    "ExpenseSplit",
    "Settlement",
    "FriendExpense",
]
