"""
Kitchen Timer — Order backend payload schemas

The backend speaks camelCase and is not consistent about which fields it
sends. Missing optional fields are defaulted here; the client decides whether
a defaulted field is acceptable (see BACKEND_STRICT_PAYLOADS).
"""
from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

GUEST_NAME = "Guest"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BackendPreparationStep(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("id", "stepId"))
    description: str = ""
    estimated_time: int = Field(default=0, validation_alias=AliasChoices("estimatedTime", "estimated_time"))
    completed: bool = False
    actual_time: int | None = Field(default=None, validation_alias=AliasChoices("actualTime", "actual_time"))


class BackendOrderItem(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("id", "itemId"))
    name: str = "Item"
    quantity: int = 1
    menu_item_id: str | None = Field(default=None, validation_alias=AliasChoices("menuItemId", "menu_item_id"))
    workstation: str = "hot"
    estimated_time: int = Field(default=0, validation_alias=AliasChoices("estimatedTime", "preparationTime"))
    status: str = "pending"
    special_requests: str | None = Field(default=None, validation_alias=AliasChoices("specialRequests",))
    preparation_steps: list[BackendPreparationStep] = Field(
        default_factory=list, validation_alias=AliasChoices("preparationSteps", "preparation_steps")
    )


class BackendOrder(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("id", "orderId", "kitchenOrderId"))
    order_number: str | None = Field(default=None, validation_alias=AliasChoices("orderNumber",))
    customer_name: str | None = Field(default=None, validation_alias=AliasChoices("customerName",))
    status: str | None = None
    priority: str | None = None
    estimated_time: int | None = Field(
        default=None, validation_alias=AliasChoices("estimatedTime", "estimatedCookingMinutes")
    )
    actual_start_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("actualStartTime", "startTime")
    )
    actual_end_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("actualEndTime", "completedTime")
    )
    assigned_workstation: str | None = Field(default=None, validation_alias=AliasChoices("assignedWorkstation",))
    assigned_staff_id: str | None = Field(default=None, validation_alias=AliasChoices("assignedStaffId",))
    assigned_staff_name: str | None = Field(default=None, validation_alias=AliasChoices("assignedStaffName",))
    special_instructions: str | None = Field(default=None, validation_alias=AliasChoices("specialInstructions",))
    allergen_alerts: list[str] = Field(default_factory=list, validation_alias=AliasChoices("allergenAlerts",))
    items: list[BackendOrderItem] = Field(default_factory=list)
    created_at: datetime | None = Field(default=None, validation_alias=AliasChoices("createdAt",))
    updated_at: datetime | None = Field(default=None, validation_alias=AliasChoices("updatedAt",))

    @field_validator("actual_start_time", "actual_end_time", "created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def missing_fields(self) -> list[str]:
        """Optional fields the backend left out and that will be defaulted."""
        wanted = ("customer_name", "status", "priority", "estimated_time")
        return [name for name in wanted if getattr(self, name) is None]
