from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field

InvoiceStatus = Literal["draft", "sent", "paid", "overdue"]

# Numeric inputs are accepted as numbers or raw strings; the draft coerces
# anything unparseable to 0.
NumericInput = Union[float, str, None]


class LineItemInput(BaseModel):
    id: Optional[str] = None
    description: str = ""
    quantity: NumericInput = 1
    rate: NumericInput = 0


class InvoiceCreate(BaseModel):
    customer_name: str = ""
    customer_phone: str = ""
    items: List[LineItemInput] = Field(..., min_length=1)
    tax: NumericInput = 0
    discount: NumericInput = 0
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatus] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: Optional[List[LineItemInput]] = Field(None, min_length=1)
    tax: NumericInput = None
    discount: NumericInput = None
    notes: Optional[str] = None


class LineItemResponse(BaseModel):
    id: str
    description: str
    quantity: float
    rate: float
    amount: float


class InvoiceResponse(BaseModel):
    id: str
    user_id: str
    customer_name: str
    customer_phone: str
    items: List[LineItemResponse] = []
    subtotal: float
    tax: float
    discount: float
    total_amount: float
    currency: str
    # Kept as a plain string: the list/stats layer treats status as open.
    status: str
    notes: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class InvoiceStatsResponse(BaseModel):
    total: int
    paid: float
    pending: float
    overdue: int


class InvoiceListResponse(BaseModel):
    data: List[InvoiceResponse] = Field(default_factory=list)
    stats: InvoiceStatsResponse


class DashboardResponse(BaseModel):
    stats: InvoiceStatsResponse
    recent: List[InvoiceResponse] = Field(default_factory=list)


class PaymentLinkResponse(BaseModel):
    authorization_url: str
    access_code: Optional[str] = None
    reference: str
    whatsapp_url: str


class PaymentVerifyResponse(BaseModel):
    reference: str
    status: str
    amount: float
    currency: Optional[str] = None
    paid_at: Optional[str] = None
