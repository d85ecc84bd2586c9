"""
Audit event payloads — one model per event type, discriminated on ``eventType``.

Adding an event type means adding an ``EventType`` member and a payload model
listed in ``EventPayload``; ``EVENT_PAYLOADS`` is built from that union.
"""
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union, get_args

from pydantic import Field, TypeAdapter

from lc_compliance.schemas.lc import CamelModel


class EventType(str, Enum):
    COMPLIANCE_CHECK = "compliance_check"
    LC_CHECK = "lc_check"
    LC_RECHECK = "lc_recheck"
    CORRECTION_SENT = "correction_sent"
    SUPPLIER_LINK_CREATED = "supplier_link_created"
    SUPPLIER_DOC_UPLOADED = "supplier_doc_uploaded"
    SUPPLIER_COMPLETE = "supplier_complete"
    STATUS_CHANGE = "status_change"
    TWINLOG_GENERATED = "twinlog_generated"
    EUDR_CREATED = "eudr_created"
    TRADE_ARCHIVED = "trade_archived"
    TRADE_CLOSED = "trade_closed"
    ACCOUNT_CREATED = "account_created"
    ARRIVAL = "arrival"
    CUSTOMS_CLEARED = "customs_cleared"


class ComplianceCheckEvent(CamelModel):
    event_type: Literal["compliance_check"] = "compliance_check"
    commodity_name: str
    origin_name: str
    destination_name: str
    risk_level: Optional[str] = None
    integrity_hash: Optional[str] = None


class LcCheckEvent(CamelModel):
    event_type: Literal["lc_check"] = "lc_check"
    check_id: str
    case_id: Optional[str] = None
    verdict: str
    integrity_hash: str
    criticals: int = 0
    warnings: int = 0


class LcRecheckEvent(CamelModel):
    event_type: Literal["lc_recheck"] = "lc_recheck"
    check_id: str
    case_id: str
    recheck_number: int
    verdict: str
    integrity_hash: str
    criticals: int = 0
    warnings: int = 0
    paid: bool = False


class CorrectionSentEvent(CamelModel):
    event_type: Literal["correction_sent"] = "correction_sent"
    case_id: str
    channel: str
    discrepancy_count: int


class SupplierLinkCreatedEvent(CamelModel):
    event_type: Literal["supplier_link_created"] = "supplier_link_created"
    request_id: str
    supplier_name: Optional[str] = None


class SupplierDocUploadedEvent(CamelModel):
    event_type: Literal["supplier_doc_uploaded"] = "supplier_doc_uploaded"
    request_id: str
    document_type: str
    file_name: Optional[str] = None


class SupplierCompleteEvent(CamelModel):
    event_type: Literal["supplier_complete"] = "supplier_complete"
    request_id: str
    documents_received: int = 0


class StatusChangeEvent(CamelModel):
    event_type: Literal["status_change"] = "status_change"
    from_status: str
    to_status: str
    case_id: Optional[str] = None
    reason: Optional[str] = None


class TwinlogGeneratedEvent(CamelModel):
    event_type: Literal["twinlog_generated"] = "twinlog_generated"
    ref: str
    chain_head_hash: Optional[str] = None


class EudrCreatedEvent(CamelModel):
    event_type: Literal["eudr_created"] = "eudr_created"
    reference: str
    geolocation_count: int = 0


class TradeArchivedEvent(CamelModel):
    event_type: Literal["trade_archived"] = "trade_archived"
    reason: Optional[str] = None


class TradeClosedEvent(CamelModel):
    event_type: Literal["trade_closed"] = "trade_closed"
    reason: Optional[str] = None


class AccountCreatedEvent(CamelModel):
    event_type: Literal["account_created"] = "account_created"
    company_name: Optional[str] = None


class ArrivalEvent(CamelModel):
    event_type: Literal["arrival"] = "arrival"
    arrival_date: str
    port: Optional[str] = None


class CustomsClearedEvent(CamelModel):
    event_type: Literal["customs_cleared"] = "customs_cleared"
    cleared_date: str
    declaration_ref: Optional[str] = None


EventPayload = Annotated[
    Union[
        ComplianceCheckEvent,
        LcCheckEvent,
        LcRecheckEvent,
        CorrectionSentEvent,
        SupplierLinkCreatedEvent,
        SupplierDocUploadedEvent,
        SupplierCompleteEvent,
        StatusChangeEvent,
        TwinlogGeneratedEvent,
        EudrCreatedEvent,
        TradeArchivedEvent,
        TradeClosedEvent,
        AccountCreatedEvent,
        ArrivalEvent,
        CustomsClearedEvent,
    ],
    Field(discriminator="event_type"),
]

EVENT_PAYLOADS = {
    EventType(model.model_fields["event_type"].default): model
    for model in get_args(get_args(EventPayload)[0])
}

_payload_adapter = TypeAdapter(EventPayload)


def parse_event(data: Dict[str, Any]):
    """Validate a raw ``{"eventType": ..., ...}`` mapping into its payload model."""
    return _payload_adapter.validate_python(data)


def event_data(payload) -> Dict[str, Any]:
    """The stored eventData: camelCase JSON without the type tag."""
    return payload.model_dump(mode="json", by_alias=True, exclude={"event_type"})
