from .users import (
    UserCreate,
    UserLogin,
    User,
    AuthResponse,
)

from .transactions import (
    TransactionBase,
    TransactionCreate,
    TransactionUpdate,
    Transaction,
)

from .recurring import (
    RecurringBase,
    RecurringCreate,
    RecurringUpdate,
    RecurringTransaction,
)

from .budgets import (
    BudgetCreate,
    BudgetUpdate,
    Budget,
)

from .goals import (
    GoalCreate,
    GoalUpdate,
    GoalProgress,
    Goal,
)

from .ai import AdviceRequest
