from pydantic import BaseModel, Field, model_validator
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any
from datetime import datetime


TWO_PLACES = Decimal("0.01")


class LineItem(BaseModel):
    """Ítem de un documento comercial. Se persiste tal cual en la columna JSON."""
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    amount: Optional[Decimal] = Field(None, ge=0, description="Si se omite: quantity * unit_amount")
    cgst_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    sgst_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    igst_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    cgst_amount: Optional[Decimal] = Field(None, ge=0)
    sgst_amount: Optional[Decimal] = Field(None, ge=0)
    igst_amount: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode='after')
    def fill_derived_amounts(self):
        if self.amount is None:
            self.amount = self.quantity * self.unit_amount
        # Impuesto por componente a partir de la tasa, redondeado por línea
        for component in ("cgst", "sgst", "igst"):
            if getattr(self, f"{component}_amount") is None:
                rate = getattr(self, f"{component}_rate")
                value = (self.amount * rate / Decimal("100")).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
                setattr(self, f"{component}_amount", value)
        return self


class SuppliedTotals(BaseModel):
    """Agregados enviados por el cliente; los valores distintos de cero se respetan."""
    subtotal: Optional[Decimal] = Field(None, ge=0)
    cgst: Optional[Decimal] = Field(None, ge=0)
    sgst: Optional[Decimal] = Field(None, ge=0)
    igst: Optional[Decimal] = Field(None, ge=0)
    total: Optional[Decimal] = Field(None, ge=0)


class DocumentTotals(BaseModel):
    subtotal: Decimal = Decimal("0")
    cgst: Decimal = Decimal("0")
    sgst: Decimal = Decimal("0")
    igst: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    def as_columns(self) -> Dict[str, Decimal]:
        return self.model_dump()


class ProjectLinkage(BaseModel):
    project_id: Optional[str] = Field(None, max_length=64)
    workspace_id: Optional[str] = Field(None, max_length=64)
    task_id: Optional[str] = Field(None, max_length=64)
    subtask_id: Optional[str] = Field(None, max_length=64)
    client_id: Optional[str] = Field(None, max_length=64)


class PMApproval(BaseModel):
    pm_id: str
    status: str
    feedback: Optional[str] = None
    approved_at: datetime


class StatusUpdate(BaseModel):
    """Cambio de estado controlado por rol."""
    status: str = Field(..., min_length=1)
    feedback: Optional[str] = Field(None, max_length=2000)
    owner_id: Optional[str] = Field(None, description="Vendor dueño del documento (PM)")


class DocumentStats(BaseModel):
    total_count: int = 0
    total_value: Decimal = Decimal("0")
    approved_count: int = 0
    by_status: Dict[str, int] = {}
    this_month_count: int = 0
    this_month_value: Decimal = Decimal("0")


class BulkItemError(BaseModel):
    subscription_id: str
    error: str
    status_code: int


class BulkResult(BaseModel):
    succeeded: List[str] = []
    failed: List[str] = []
    errors: List[BulkItemError] = []


class BillingDocumentBase(BaseModel):
    """Campos comunes de creación para todos los documentos comerciales."""
    owner_id: Optional[str] = Field(None, description="Debe coincidir con el vendor autenticado")
    counterparty_id: str = Field(..., min_length=1, max_length=64)
    counterparty_name: Optional[str] = Field(None, max_length=255)
    line_items: List[LineItem] = []
    subtotal: Optional[Decimal] = Field(None, ge=0)
    cgst: Optional[Decimal] = Field(None, ge=0)
    sgst: Optional[Decimal] = Field(None, ge=0)
    igst: Optional[Decimal] = Field(None, ge=0)
    total: Optional[Decimal] = Field(None, ge=0)
    project_id: Optional[str] = Field(None, max_length=64)
    workspace_id: Optional[str] = Field(None, max_length=64)
    task_id: Optional[str] = Field(None, max_length=64)
    subtask_id: Optional[str] = Field(None, max_length=64)
    client_id: Optional[str] = Field(None, max_length=64)
    extra: Dict[str, Any] = Field(default_factory=dict, description="Campos adicionales de paso")

    def supplied_totals(self) -> SuppliedTotals:
        return SuppliedTotals(
            subtotal=self.subtotal, cgst=self.cgst, sgst=self.sgst,
            igst=self.igst, total=self.total
        )

    def linkage(self) -> ProjectLinkage:
        return ProjectLinkage(
            project_id=self.project_id, workspace_id=self.workspace_id,
            task_id=self.task_id, subtask_id=self.subtask_id, client_id=self.client_id
        )


class BillingDocumentUpdate(BaseModel):
    """Actualización parcial: solo se aplican los campos enviados."""
    counterparty_id: Optional[str] = Field(None, min_length=1, max_length=64)
    counterparty_name: Optional[str] = Field(None, max_length=255)
    line_items: Optional[List[LineItem]] = None
    subtotal: Optional[Decimal] = Field(None, ge=0)
    cgst: Optional[Decimal] = Field(None, ge=0)
    sgst: Optional[Decimal] = Field(None, ge=0)
    igst: Optional[Decimal] = Field(None, ge=0)
    total: Optional[Decimal] = Field(None, ge=0)
    project_id: Optional[str] = Field(None, max_length=64)
    workspace_id: Optional[str] = Field(None, max_length=64)
    task_id: Optional[str] = Field(None, max_length=64)
    subtask_id: Optional[str] = Field(None, max_length=64)
    client_id: Optional[str] = Field(None, max_length=64)
    extra: Optional[Dict[str, Any]] = None


class BillingDocumentOut(BaseModel):
    owner_id: str
    custom_document_id: Optional[str] = None
    counterparty_id: Optional[str] = None
    counterparty_name: Optional[str] = None
    line_items: List[Dict[str, Any]] = []
    subtotal: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total: Decimal
    project_id: Optional[str] = None
    workspace_id: Optional[str] = None
    task_id: Optional[str] = None
    subtask_id: Optional[str] = None
    client_id: Optional[str] = None
    extra: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
