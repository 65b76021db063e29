"""
Kitchen Timer — Workstation records

[CONFIG DATA] — station layout and capacities; current orders are in-memory.
"""
from dataclasses import dataclass, field
from enum import Enum

LOAD_WARNING_PERCENT = 70.0
LOAD_CRITICAL_PERCENT = 90.0


class WorkstationType(str, Enum):
    COLD = "cold"
    HOT = "hot"
    GRILL = "grill"
    PREP = "prep"
    DESSERT = "dessert"
    BEVERAGE = "beverage"


@dataclass
class Workstation:
    type: WorkstationType
    name: str
    capacity: int
    is_active: bool = True
    assigned_staff_id: str | None = None
    assigned_staff_name: str | None = None
    current_orders: list[str] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return len(self.current_orders) >= self.capacity

    @property
    def load_percent(self) -> float:
        if self.capacity <= 0:
            return 100.0
        return round(len(self.current_orders) / self.capacity * 100, 1)

    @property
    def load_level(self) -> str:
        load = self.load_percent
        if load >= LOAD_CRITICAL_PERCENT:
            return "critical"
        if load >= LOAD_WARNING_PERCENT:
            return "warning"
        return "normal"


def default_workstations() -> dict[WorkstationType, Workstation]:
    layout = [
        (WorkstationType.COLD, "Cold station", 5),
        (WorkstationType.HOT, "Hot line", 8),
        (WorkstationType.GRILL, "Grill", 6),
        (WorkstationType.PREP, "Prep", 4),
        (WorkstationType.DESSERT, "Dessert", 3),
        (WorkstationType.BEVERAGE, "Beverage", 10),
    ]
    return {t: Workstation(type=t, name=name, capacity=cap) for t, name, cap in layout}
