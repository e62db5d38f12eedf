"""ProcureFlow: SQLAlchemy models."""
from procureflow.models.audit import AuditLog
from procureflow.models.invoice import InvoiceStatus, VendorInvoice
from procureflow.models.material_request import (
    MaterialCategory,
    MaterialRequest,
    MaterialRequestItem,
    MaterialUnit,
    RequestApproval,
    RequestPriority,
    RequestStatus,
    VendorAssignment,
)
from procureflow.models.message import (
    Currency,
    MessageRead,
    MessageType,
    NegotiationMessage,
    Quotation,
    QuotationStatus,
    SystemEvent,
)
from procureflow.models.purchase_order import (
    DeliveryStatus,
    DeliveryUpdate,
    LineDeliveryStatus,
    POStatus,
    PurchaseOrder,
    PurchaseOrderLine,
)

__all__ = [
    "AuditLog",
    "VendorInvoice", "InvoiceStatus",
    "MaterialRequest", "MaterialRequestItem", "VendorAssignment", "RequestApproval",
    "RequestStatus", "RequestPriority", "MaterialUnit", "MaterialCategory",
    "NegotiationMessage", "Quotation", "MessageRead",
    "MessageType", "SystemEvent", "QuotationStatus", "Currency",
    "PurchaseOrder", "PurchaseOrderLine", "DeliveryUpdate",
    "POStatus", "DeliveryStatus", "LineDeliveryStatus",
]
