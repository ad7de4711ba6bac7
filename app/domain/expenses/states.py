"""Business expense workflow"""

from enum import Enum

from ...shared.state_machine import StateMachine


class ExpenseStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class MovementType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class MovementStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


EXPENSE_WORKFLOW = StateMachine(
    "expense",
    ExpenseStatus,
    {
        ExpenseStatus.PENDING: frozenset({ExpenseStatus.APPROVED, ExpenseStatus.CANCELLED}),
        ExpenseStatus.APPROVED: frozenset({ExpenseStatus.PAID, ExpenseStatus.CANCELLED}),
        ExpenseStatus.PAID: frozenset(),
        ExpenseStatus.CANCELLED: frozenset(),
    },
)

DEFAULT_CATEGORIES = [
    {"name": "Arriendo", "description": "Arriendo del local", "color": "#6366f1", "icon": "home"},
    {"name": "Servicios públicos", "description": "Agua, luz, gas e internet", "color": "#0ea5e9", "icon": "bolt"},
    {"name": "Nómina", "description": "Salarios y prestaciones", "color": "#22c55e", "icon": "users"},
    {"name": "Insumos", "description": "Productos y materiales", "color": "#f59e0b", "icon": "box"},
    {"name": "Marketing", "description": "Publicidad y promociones", "color": "#ec4899", "icon": "megaphone"},
    {"name": "Mantenimiento", "description": "Reparaciones y equipos", "color": "#8b5cf6", "icon": "wrench"},
    {"name": "Impuestos", "description": "Impuestos y tasas", "color": "#ef4444", "icon": "receipt"},
    {"name": "Otros", "description": "Gastos varios", "color": "#64748b", "icon": "dots"},
]
