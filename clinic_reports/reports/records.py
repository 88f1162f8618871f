"""
Report Source Records

Typed, read-only views of the seven operational collections the report engine
reads: patients, lab results, drug orders, drugs (inventory), sales, payments
and walk-in services. Rows coming out of the data store are loosely typed, so
each record type parses its own row and substitutes safe defaults for missing
values instead of raising.

Copyright: © 2025 Clinic Reports contributors
"""

import json
from dataclasses import dataclass
from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, Optional, Tuple


UNKNOWN = "UNKNOWN"


class LabStatus(Enum):
    """Lab test lifecycle status"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    UNKNOWN = UNKNOWN

    @classmethod
    def parse(cls, value: Any) -> 'LabStatus':
        return _parse_enum(cls, value)


class OrderStatus(Enum):
    """Drug order status"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DISPENSED = "DISPENSED"
    CANCELLED = "CANCELLED"
    UNKNOWN = UNKNOWN

    @classmethod
    def parse(cls, value: Any) -> 'OrderStatus':
        return _parse_enum(cls, value)


class PaymentStatus(Enum):
    """Payment status shared by payments, sales and walk-in services"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    UNKNOWN = UNKNOWN

    @classmethod
    def parse(cls, value: Any) -> 'PaymentStatus':
        return _parse_enum(cls, value)


def _parse_enum(enum_cls, value: Any):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return enum_cls.UNKNOWN
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        return enum_cls.UNKNOWN


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _float(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _optional_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    return bool(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into a naive local datetime.

    Accepts datetime/date objects and ISO 8601 strings (with or without a
    'Z' / offset suffix). Aware values are converted to local time.
    Returns None for missing or unparseable values.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _items(value: Any) -> Tuple[Dict[str, Any], ...]:
    """Decode an items column (JSON text or already-decoded list)"""
    if value in (None, ""):
        return ()
    if isinstance(value, str):
        # Malformed JSON is a broken source row and propagates to the caller
        value = json.loads(value)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"items must be a list, got {type(value).__name__}")
    return tuple(dict(item) for item in value)


@dataclass(frozen=True)
class Patient:
    id: str
    patient_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Patient':
        return cls(
            id=str(row.get('id')),
            patient_id=_text(row.get('patient_id')),
            first_name=_text(row.get('first_name')),
            last_name=_text(row.get('last_name')),
            age=_optional_int(row.get('age')),
            gender=_text(row.get('gender')),
            phone=_text(row.get('phone')),
            is_active=_bool(row.get('is_active')),
            created_at=parse_timestamp(row.get('created_at')),
        )


@dataclass(frozen=True)
class LabResult:
    id: str
    test_id: Optional[str] = None
    patient_name: Optional[str] = None
    test_type: Optional[str] = None
    test_name: Optional[str] = None
    status: LabStatus = LabStatus.UNKNOWN
    requested_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'LabResult':
        return cls(
            id=str(row.get('id')),
            test_id=_text(row.get('test_id')),
            patient_name=_text(row.get('patient_name')),
            test_type=_text(row.get('test_type')),
            test_name=_text(row.get('test_name')),
            status=LabStatus.parse(row.get('status')),
            requested_at=parse_timestamp(row.get('requested_at')),
            completed_at=parse_timestamp(row.get('completed_at')),
        )


@dataclass(frozen=True)
class OrderItem:
    total_price: float = 0.0


@dataclass(frozen=True)
class DrugOrder:
    id: str
    order_id: Optional[str] = None
    patient_name: Optional[str] = None
    status: OrderStatus = OrderStatus.UNKNOWN
    total_amount: Optional[float] = None
    items: Tuple[OrderItem, ...] = ()
    ordered_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'DrugOrder':
        return cls(
            id=str(row.get('id')),
            order_id=_text(row.get('order_id')),
            patient_name=_text(row.get('patient_name')),
            status=OrderStatus.parse(row.get('status')),
            total_amount=_optional_float(row.get('total_amount')),
            items=tuple(
                OrderItem(total_price=_float(item.get('totalPrice', item.get('total_price'))))
                for item in _items(row.get('items'))
            ),
            ordered_at=parse_timestamp(row.get('ordered_at')),
        )


@dataclass(frozen=True)
class Drug:
    id: str
    drug_id: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    stock_quantity: int = 0
    selling_price: float = 0.0
    manufacturer: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Drug':
        return cls(
            id=str(row.get('id')),
            drug_id=_text(row.get('drug_id')),
            name=_text(row.get('name')),
            category=_text(row.get('category')),
            stock_quantity=_int(row.get('stock_quantity')),
            selling_price=_float(row.get('selling_price')),
            manufacturer=_text(row.get('manufacturer')),
            expiry_date=parse_timestamp(row.get('expiry_date')),
        )


@dataclass(frozen=True)
class SaleItem:
    drug_name: Optional[str] = None
    quantity: int = 0
    unit_price: float = 0.0
    total_price: float = 0.0


@dataclass(frozen=True)
class Sale:
    id: str
    sale_id: Optional[str] = None
    patient_name: Optional[str] = None
    total: float = 0.0
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.UNKNOWN
    items: Tuple[SaleItem, ...] = ()
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Sale':
        return cls(
            id=str(row.get('id')),
            sale_id=_text(row.get('sale_id')),
            patient_name=_text(row.get('patient_name')),
            total=_float(row.get('total')),
            payment_method=_text(row.get('payment_method')),
            payment_status=PaymentStatus.parse(row.get('payment_status')),
            items=tuple(
                SaleItem(
                    drug_name=_text(item.get('drugName', item.get('drug_name'))),
                    quantity=_int(item.get('quantity')),
                    unit_price=_float(item.get('unitPrice', item.get('unit_price'))),
                    total_price=_float(item.get('totalPrice', item.get('total_price'))),
                )
                for item in _items(row.get('items'))
            ),
            created_at=parse_timestamp(row.get('created_at')),
        )


@dataclass(frozen=True)
class Payment:
    id: str
    payment_id: Optional[str] = None
    patient_id: Optional[str] = None
    amount: float = 0.0
    final_amount: Optional[float] = None
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.UNKNOWN
    created_at: Optional[datetime] = None

    @property
    def collected_amount(self) -> float:
        """Amount actually collected: the final amount when set, else the amount"""
        return self.final_amount if self.final_amount is not None else self.amount

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Payment':
        return cls(
            id=str(row.get('id')),
            payment_id=_text(row.get('payment_id')),
            patient_id=_text(row.get('patient_id')),
            amount=_float(row.get('amount')),
            final_amount=_optional_float(row.get('final_amount')),
            payment_method=_text(row.get('payment_method')),
            payment_status=PaymentStatus.parse(row.get('payment_status')),
            created_at=parse_timestamp(row.get('created_at')),
        )


@dataclass(frozen=True)
class WalkInService:
    id: str
    service_id: Optional[str] = None
    patient_name: Optional[str] = None
    service_type: Optional[str] = None
    amount: float = 0.0
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.UNKNOWN
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'WalkInService':
        return cls(
            id=str(row.get('id')),
            service_id=_text(row.get('service_id')),
            patient_name=_text(row.get('patient_name')),
            service_type=_text(row.get('service_type')),
            amount=_float(row.get('amount')),
            payment_method=_text(row.get('payment_method')),
            payment_status=PaymentStatus.parse(row.get('payment_status')),
            created_at=parse_timestamp(row.get('created_at')),
        )
