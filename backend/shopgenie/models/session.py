# /shopgenie/models/session.py

from enum import Enum
from typing import Optional, List, Dict, Any, Union, Literal, Annotated
from datetime import datetime
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from shopgenie.models.domain import OrderItem, ProductSuggestion


class FlowKind(str, Enum):
    NONE = "none"
    AUTH = "auth"
    CHECKOUT = "checkout"
    ORDER = "order"


class AuthStep(str, Enum):
    METHOD_SELECTION = "method_selection"
    PHONE_INPUT = "phone_input"
    OTP_INPUT = "otp_input"
    EMAIL_INPUT = "email_input"
    PASSWORD_INPUT = "password_input"


class CheckoutStep(str, Enum):
    ITEM_SELECTION = "item_selection"


class OrderStep(str, Enum):
    SUGGESTION_SELECTION = "suggestion_selection"


# Steps whose reply is a secret and must never be stored as typed
SECRET_INPUT_STEPS = frozenset({AuthStep.OTP_INPUT, AuthStep.PASSWORD_INPUT})


class AuthFlow(BaseModel):
    kind: Literal["auth"] = "auth"
    step: AuthStep
    retailer: str
    phone_number: Optional[str] = None
    email: Optional[str] = None


class CheckoutFlow(BaseModel):
    kind: Literal["checkout"] = "checkout"
    step: CheckoutStep = CheckoutStep.ITEM_SELECTION
    items: List[str]
    current_index: int = 0
    # item name -> retailer key, or None when the item was skipped
    selections: Dict[str, Optional[str]] = Field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.current_index >= len(self.items)

    @property
    def current_item(self) -> Optional[str]:
        if self.is_complete:
            return None
        return self.items[self.current_index]

    @property
    def remaining(self) -> int:
        return max(len(self.items) - self.current_index, 0)


class OrderFlow(BaseModel):
    kind: Literal["order"] = "order"
    step: OrderStep = OrderStep.SUGGESTION_SELECTION
    items: List[OrderItem]
    cart_id: str
    # item name -> chosen product suggestion
    selections: Dict[str, ProductSuggestion] = Field(default_factory=dict)

    def find_item(self, name: str) -> Optional[OrderItem]:
        wanted = name.strip().lower()
        for item in self.items:
            if item.name.lower() == wanted:
                return item
        for item in self.items:
            if wanted in item.name.lower() or item.name.lower() in wanted:
                return item
        return None


Flow = Annotated[Union[AuthFlow, CheckoutFlow, OrderFlow], Field(discriminator="kind")]
_FLOW_ADAPTER: TypeAdapter = TypeAdapter(Flow)

EMPTY_SESSION_BLOB: Dict[str, Any] = {"flow_kind": FlowKind.NONE.value, "flow_step": None, "flow_data": {}}


class Session(BaseModel):
    """
    Per-user conversation state. At most one flow is active; the tagged
    union makes a second concurrent flow unrepresentable.

    `stale` marks a stored blob that could not be parsed into a flow (for
    example an auth flow without a step). Stale sessions are cleared before
    any message is resolved against them.
    """
    user_id: str
    flow: Optional[Flow] = None
    version: int = 0
    stale: bool = False
    updated_at: Optional[datetime] = None

    @property
    def flow_kind(self) -> FlowKind:
        if self.flow is None:
            return FlowKind.NONE
        return FlowKind(self.flow.kind)

    @property
    def flow_step(self) -> Optional[str]:
        return self.flow.step.value if self.flow is not None else None

    @property
    def is_empty(self) -> bool:
        return self.flow is None and not self.stale

    @property
    def expects_secret(self) -> bool:
        return isinstance(self.flow, AuthFlow) and self.flow.step in SECRET_INPUT_STEPS

    def to_blob(self) -> Dict[str, Any]:
        if self.flow is None:
            return {**EMPTY_SESSION_BLOB, "flow_data": {}}
        data = self.flow.model_dump(mode="json", exclude={"kind", "step"})
        return {
            "flow_kind": self.flow.kind,
            "flow_step": self.flow.step.value,
            "flow_data": {k: v for k, v in data.items() if v is not None},
        }

    @classmethod
    def from_blob(
        cls,
        user_id: str,
        blob: Optional[Dict[str, Any]],
        version: int = 0,
        updated_at: Optional[datetime] = None,
    ) -> "Session":
        blob = blob or {}
        kind = blob.get("flow_kind") or FlowKind.NONE.value
        if kind == FlowKind.NONE.value:
            return cls(user_id=user_id, version=version, updated_at=updated_at)

        step = blob.get("flow_step")
        data = blob.get("flow_data") or {}
        if not step or not isinstance(data, dict):
            return cls(user_id=user_id, version=version, stale=True, updated_at=updated_at)
        try:
            flow = _FLOW_ADAPTER.validate_python({**data, "kind": kind, "step": step})
        except ValidationError:
            return cls(user_id=user_id, version=version, stale=True, updated_at=updated_at)
        return cls(user_id=user_id, flow=flow, version=version, updated_at=updated_at)
