"""Epicor data models.

Request/response models map the Omni function library's JSON schema
(PascalCase keys). ``CaseStatus`` is the normalized case record Omni hands
to callers.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class CaseState(str, Enum):
    """Whether a case still has an open task."""
    OPEN = "OPEN"
    COMPLETED = "COMPLETED"


class EpicorBaseModel(BaseModel):
    """Base model for Epicor function payloads."""

    class Config:
        populate_by_name = True
        extra = "ignore"


# =============================================================================
# Function Inputs
# =============================================================================

class CaseInput(EpicorBaseModel):
    case_num: int = Field(..., alias="CaseNum")


class CompleteTaskInput(CaseInput):
    assign_next_to_name: str = Field(..., alias="AssignNextToName")
    comment: Optional[str] = Field(None, alias="Comment")


class AddCaseCommentInput(CaseInput):
    comment: str = Field(..., alias="Comment")


class UpdateQuoteInput(CaseInput):
    new_quantity: float = Field(..., alias="Qty")


# =============================================================================
# Function Responses
# =============================================================================

class FunctionResponse(EpicorBaseModel):
    """Every Omni function reports ``Error`` and ``Message``."""
    error: bool = Field(False, alias="Error")
    message: Optional[str] = Field(None, alias="Message")


class CompleteTaskResponse(FunctionResponse):
    has_active_task: bool = Field(True, alias="HasActiveTask")
    authorized_to_complete_task: bool = Field(True, alias="AuthorizedToCompleteTask")
    multiple_sales_rep_matches: bool = Field(False, alias="MultipleSalesRepMatches")
    no_sales_rep_match: bool = Field(False, alias="NoSalesRepMatch")

    def describe_failure(self) -> str:
        """Explain an ``Error: true`` reply using its flags."""
        reasons = []
        if not self.has_active_task:
            reasons.append("the case has no active task")
        if not self.authorized_to_complete_task:
            reasons.append("this user is not authorized to complete the task")
        if self.multiple_sales_rep_matches:
            reasons.append("the assignee matches more than one person")
        if self.no_sales_rep_match:
            reasons.append("the assignee matches nobody")
        if self.message:
            reasons.insert(0, self.message)
        return "; ".join(reasons) or "Epicor reported an error"


class GetLastCommentResponse(FunctionResponse):
    comment: Optional[str] = Field(None, alias="Comment")


class CaseStatusResponse(FunctionResponse):
    project_id: Optional[str] = Field(None, alias="ProjectID")
    case_description: Optional[str] = Field(None, alias="CaseDescription")
    part_num: Optional[str] = Field(None, alias="PartNum")
    qty: Optional[float] = Field(None, alias="Qty")
    unit_price: Optional[float] = Field(None, alias="UnitPrice")
    case_owner: Optional[str] = Field(None, alias="CaseOwner")
    internal_contact: Optional[str] = Field(None, alias="InternalContact")
    case_contact: Optional[str] = Field(None, alias="CaseContact")
    current_task: Optional[str] = Field(None, alias="CurrentTask")
    current_task_assigned_to: Optional[str] = Field(None, alias="CurrentTaskAssignedTo")
    requested_delivery: Optional[str] = Field(None, alias="RequestedDelivery")
    start_date: Optional[str] = Field(None, alias="StartDate")
    expected_delivery_date: Optional[str] = Field(None, alias="ExpectedDeliveryDate")
    developer: Optional[str] = Field(None, alias="Developer")
    wbs_phase_id: Optional[str] = Field(None, alias="WBSPhaseID")
    wbs_phase_op: Optional[int] = Field(None, alias="WBSPhaseOp")
    estimated_hours: Optional[float] = Field(None, alias="EstimatedHours")
    hours_scheduled: Optional[float] = Field(None, alias="HoursScheduled")
    hours_applied: Optional[float] = Field(None, alias="HoursApplied")
    billed_percent: Optional[float] = Field(None, alias="BilledPercent")


# =============================================================================
# Normalized Model
# =============================================================================

class CaseStatus(BaseModel):
    """Current state of an Epicor case."""
    case_number: int
    status: CaseState
    assigned_to: str = ""
    current_task: str = ""
    comments: List[str] = Field(default_factory=list)

    owner: str = ""
    case_contact: str = ""
    internal_contact: str = ""
    description: str = ""
    project_id: str = ""
    part_num: str = ""
    unit_price: float = 0.0
    quantity: float = 0.0
    wbs_phase_id: str = ""
    wbs_phase_op: int = 0
    developer: str = ""
    requested_delivery: str = ""
    start_date: str = ""
    expected_delivery_date: str = ""
    estimated_hours: float = 0.0
    hours_scheduled: float = 0.0
    hours_applied: float = 0.0
    billed_percent: float = 0.0

    class Config:
        frozen = True

    @classmethod
    def from_response(cls, case_number: int, response: CaseStatusResponse) -> "CaseStatus":
        values = {
            "assigned_to": response.current_task_assigned_to,
            "current_task": response.current_task,
            "owner": response.case_owner,
            "case_contact": response.case_contact,
            "internal_contact": response.internal_contact,
            "description": response.case_description,
            "project_id": response.project_id,
            "part_num": response.part_num,
            "unit_price": response.unit_price,
            "quantity": response.qty,
            "wbs_phase_id": response.wbs_phase_id,
            "wbs_phase_op": response.wbs_phase_op,
            "developer": response.developer,
            "requested_delivery": response.requested_delivery,
            "start_date": response.start_date,
            "expected_delivery_date": response.expected_delivery_date,
            "estimated_hours": response.estimated_hours,
            "hours_scheduled": response.hours_scheduled,
            "hours_applied": response.hours_applied,
            "billed_percent": response.billed_percent,
        }
        return cls(
            case_number=case_number,
            status=CaseState.OPEN if (response.current_task or "").strip() else CaseState.COMPLETED,
            **{k: v for k, v in values.items() if v is not None},
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def rows(self) -> List[Tuple[str, Any]]:
        """Labelled rows for text output."""
        return [
            ("Case Number", self.case_number),
            ("Status", self.status.value),
            ("Case Owner", self.owner),
            ("Case Contact", self.case_contact),
            ("Internal Contact", self.internal_contact),
            ("Case Description", self.description),
            ("Project", self.project_id),
            ("Part Num", self.part_num),
            ("Unit Price", self.unit_price),
            ("Quantity", self.quantity),
            ("Phase", self.wbs_phase_id),
            ("Op", self.wbs_phase_op),
            ("Current Task", self.current_task),
            ("Assigned To", self.assigned_to),
            ("Case Developer", self.developer),
            ("Request Date", self.requested_delivery),
            ("Start Date", self.start_date),
            ("Expected Delivery Date", self.expected_delivery_date),
            ("Estimated Hours", self.estimated_hours),
            ("Hours Scheduled", self.hours_scheduled),
            ("Hours Applied", self.hours_applied),
            ("Billed Percent", self.billed_percent),
            ("Last Comment", self.comments[-1] if self.comments else ""),
        ]
