"""
Report Handlers (Business Logic Layer)

Report handlers implementing the aggregation layer. One handler class per
source collection turns window-filtered records into a summary, categorical
distributions and a record projection for the UI. ComprehensiveReports fans
out over every source concurrently and reconciles revenue; the
ReportRequestHandler ties selector normalisation, window resolution and
dispatch together into the response envelope.

Copyright: © 2025 Clinic Reports contributors
"""

import time
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_EXCEPTION
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config import ReportsConfig
from .filters import (
    DateRange,
    normalize_report_type,
    normalize_date_range,
    resolve_date_range,
)
from .records import UNKNOWN, LabStatus, OrderStatus, PaymentStatus
from .service import ReportService, ReportDataError, SOURCES

logger = logging.getLogger(__name__)


def count_by(records: Iterable[Any], key: Callable[[Any], Any]) -> Dict[str, int]:
    """Count records per category label; missing labels count as UNKNOWN"""
    distribution: Dict[str, int] = {}
    for record in records:
        label = key(record)
        if isinstance(label, Enum):
            label = label.value
        label = label or UNKNOWN
        distribution[label] = distribution.get(label, 0) + 1
    return distribution


def percentage(part: float, whole: float) -> float:
    """part / whole as a percentage, 0 when whole is 0"""
    return (part / whole) * 100 if whole > 0 else 0


def average(total: float, count: int) -> float:
    return total / count if count > 0 else 0


def local_iso(moment: datetime) -> str:
    """ISO 8601 with the local UTC offset; naive values are taken as local time"""
    return moment.astimezone().isoformat()


def local_now() -> datetime:
    return datetime.now().astimezone()


def age_group(age: Optional[int]) -> str:
    age = age or 0
    if age < 18:
        return 'Under 18'
    if age < 30:
        return '18-29'
    if age < 50:
        return '30-49'
    if age < 65:
        return '50-64'
    return '65+'


class DomainReport(ABC):
    """Base class for single-source reports"""

    source: str

    def generate(self, service: ReportService, window: DateRange) -> Dict[str, Any]:
        """Fetch this report's source for window and aggregate it"""
        return self.aggregate(service.fetch(self.source, window), window)

    @abstractmethod
    def aggregate(self, records: List[Any], window: DateRange) -> Dict[str, Any]:
        pass


class PatientReports(DomainReport):
    """Handlers for patient reports"""

    source = 'patients'

    def aggregate(self, records, window):
        total = len(records)
        active = sum(1 for p in records if p.is_active)
        # Re-applies the fetch window, so equals total for window-filtered input
        new = sum(1 for p in records if window.contains(p.created_at))

        return {
            'summary': {
                'totalPatients': total,
                'activePatients': active,
                'newPatients': new,
                'inactivePatients': total - active
            },
            'demographics': {
                'genderDistribution': count_by(records, lambda p: p.gender.upper() if p.gender else None),
                'ageGroups': count_by(records, lambda p: age_group(p.age))
            },
            'patients': [
                {
                    'patientId': p.patient_id,
                    'name': ' '.join(part for part in (p.first_name, p.last_name) if part),
                    'age': p.age,
                    'gender': p.gender,
                    'phone': p.phone,
                    'isActive': p.is_active,
                    'createdAt': p.created_at
                }
                for p in records
            ]
        }


class LabResultReports(DomainReport):
    """Handlers for lab request and result reports"""

    source = 'lab_results'

    def aggregate(self, records, window):
        total = len(records)
        by_status = count_by(records, lambda lr: lr.status)
        completed = by_status.get(LabStatus.COMPLETED.value, 0)

        return {
            'summary': {
                'totalTests': total,
                'completedTests': completed,
                'pendingTests': by_status.get(LabStatus.PENDING.value, 0),
                'inProgressTests': by_status.get(LabStatus.IN_PROGRESS.value, 0),
                'cancelledTests': by_status.get(LabStatus.CANCELLED.value, 0),
                'completionRate': percentage(completed, total)
            },
            'testTypeDistribution': count_by(records, lambda lr: lr.test_type),
            'labResults': [
                {
                    'testId': lr.test_id,
                    'patientName': lr.patient_name,
                    'testType': lr.test_type,
                    'testName': lr.test_name,
                    'status': lr.status.value,
                    'requestedAt': lr.requested_at,
                    'completedAt': lr.completed_at
                }
                for lr in records
            ]
        }


class DrugOrderReports(DomainReport):
    """Handlers for drug order reports"""

    source = 'drug_orders'

    def aggregate(self, records, window):
        total = len(records)
        by_status = count_by(records, lambda o: o.status)
        total_value = sum(item.total_price for order in records for item in order.items)

        return {
            'summary': {
                'totalOrders': total,
                'dispensedOrders': by_status.get(OrderStatus.DISPENSED.value, 0),
                'approvedOrders': by_status.get(OrderStatus.APPROVED.value, 0),
                'pendingOrders': by_status.get(OrderStatus.PENDING.value, 0),
                'totalValue': total_value,
                'averageOrderValue': average(total_value, total)
            },
            'drugOrders': [
                {
                    'orderId': o.order_id,
                    'patientName': o.patient_name,
                    'status': o.status.value,
                    'totalAmount': o.total_amount,
                    'orderedAt': o.ordered_at,
                    'itemsCount': len(o.items)
                }
                for o in records
            ]
        }


class InventoryReports(DomainReport):
    """Handlers for inventory reports; the window is never applied to drugs"""

    source = 'drugs'

    def __init__(self, low_stock_threshold: int = 10):
        self.low_stock_threshold = low_stock_threshold

    def aggregate(self, records, window):
        threshold = self.low_stock_threshold

        return {
            'summary': {
                'totalDrugs': len(records),
                'inStockDrugs': sum(1 for d in records if d.stock_quantity > threshold),
                'lowStockDrugs': sum(1 for d in records if 0 < d.stock_quantity <= threshold),
                'outOfStockDrugs': sum(1 for d in records if d.stock_quantity == 0),
                'totalValue': inventory_value(records)
            },
            'categoryDistribution': count_by(records, lambda d: d.category),
            'drugs': [
                {
                    'drugId': d.drug_id,
                    'name': d.name,
                    'category': d.category,
                    'stockQuantity': d.stock_quantity,
                    'sellingPrice': d.selling_price,
                    'expiryDate': d.expiry_date,
                    'manufacturer': d.manufacturer
                }
                for d in records
            ]
        }


class SalesReports(DomainReport):
    """Handlers for pharmacy sales reports"""

    source = 'sales'

    def aggregate(self, records, window):
        total = len(records)
        revenue = sum(s.total for s in records)

        return {
            'summary': {
                'totalSales': total,
                'totalRevenue': revenue,
                'averageSale': average(revenue, total),
                'totalItems': sum(item.quantity for s in records for item in s.items)
            },
            'paymentMethodDistribution': count_by(records, lambda s: s.payment_method),
            'sales': [
                {
                    'saleId': s.sale_id,
                    'patientName': s.patient_name,
                    'total': s.total,
                    'paymentMethod': s.payment_method,
                    'paymentStatus': s.payment_status.value,
                    'createdAt': s.created_at,
                    'items': [
                        {
                            'drugName': item.drug_name,
                            'quantity': item.quantity,
                            'unitPrice': item.unit_price,
                            'totalPrice': item.total_price
                        }
                        for item in s.items
                    ]
                }
                for s in records
            ]
        }


class PaymentReports(DomainReport):
    """Handlers for payment reports"""

    source = 'payments'

    def aggregate(self, records, window):
        status_distribution = count_by(records, lambda p: p.payment_status)

        return {
            'summary': {
                'totalPayments': len(records),
                # Recorded amount only; final amount overrides apply in the comprehensive report
                'totalRevenue': sum(
                    p.amount for p in records if p.payment_status == PaymentStatus.COMPLETED
                ),
                'completedPayments': status_distribution.get(PaymentStatus.COMPLETED.value, 0),
                'pendingPayments': status_distribution.get(PaymentStatus.PENDING.value, 0),
                'failedPayments': status_distribution.get(PaymentStatus.FAILED.value, 0)
            },
            'statusDistribution': status_distribution,
            'methodDistribution': count_by(records, lambda p: p.payment_method),
            'payments': [
                {
                    'paymentId': p.payment_id,
                    'patientId': p.patient_id,
                    'amount': p.amount,
                    'paymentMethod': p.payment_method,
                    'paymentStatus': p.payment_status.value,
                    'createdAt': p.created_at
                }
                for p in records
            ]
        }


class WalkInServiceReports(DomainReport):
    """Handlers for walk-in service reports"""

    source = 'walk_in_services'

    def aggregate(self, records, window):
        total = len(records)
        revenue = walk_in_revenue(records)

        return {
            'summary': {
                'totalServices': total,
                'totalRevenue': revenue,
                'averageServicePrice': average(revenue, total),
                'completedServices': sum(1 for s in records if s.payment_status == PaymentStatus.COMPLETED),
                'pendingServices': sum(1 for s in records if s.payment_status == PaymentStatus.PENDING)
            },
            'serviceTypeDistribution': count_by(records, lambda s: s.service_type),
            'paymentMethodDistribution': count_by(records, lambda s: s.payment_method),
            'services': [
                {
                    'serviceId': s.service_id,
                    'patientName': s.patient_name,
                    'serviceType': s.service_type,
                    'amount': s.amount,
                    'paymentMethod': s.payment_method,
                    'paymentStatus': s.payment_status.value,
                    'createdAt': s.created_at
                }
                for s in records
            ]
        }


def inventory_value(drugs) -> float:
    return sum(d.selling_price * d.stock_quantity for d in drugs)


def walk_in_revenue(services) -> float:
    return sum(s.amount for s in services if s.payment_status == PaymentStatus.COMPLETED)


class ComprehensiveReports:
    """Cross-domain report over every source collection"""

    def __init__(self, service: ReportService, timeout: float = 30.0, max_workers: int = len(SOURCES)):
        self.service = service
        self.timeout = timeout
        self.max_workers = max_workers

    def fetch_all(self, window: DateRange) -> Dict[str, List[Any]]:
        """
        Fetch every source for window concurrently.

        All fetches must finish within the timeout. The first failure or a
        timeout aborts the whole report; no source is ever replaced by an
        empty list.

        Raises:
            ReportDataError: If any source fails or does not finish in time
        """
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="report-fetch")
        try:
            future_to_source = {
                executor.submit(self.service.fetch, source, window): source
                for source in SOURCES
            }
            done, not_done = wait(future_to_source, timeout=self.timeout, return_when=FIRST_EXCEPTION)

            for future in done:
                error = future.exception()
                if error is not None:
                    source = future_to_source[future]
                    if isinstance(error, ReportDataError):
                        raise error
                    raise ReportDataError(source, str(error)) from error

            if not_done:
                pending = sorted(future_to_source[f] for f in not_done)
                raise ReportDataError(
                    ', '.join(pending),
                    f"timed out after {self.timeout}s"
                )

            return {future_to_source[f]: f.result() for f in done}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def summarize(records: Dict[str, List[Any]]) -> Dict[str, Any]:
        """Build overview, financial and performance sections from fetched records"""
        patients = records['patients']
        lab_results = records['lab_results']
        drug_orders = records['drug_orders']
        drugs = records['drugs']
        sales = records['sales']
        payments = records['payments']
        services = records['walk_in_services']

        completed_payments = [p for p in payments if p.payment_status == PaymentStatus.COMPLETED]
        payments_revenue = sum(p.collected_amount for p in completed_payments)

        return {
            'overview': {
                'totalPatients': len(patients),
                'totalLabTests': len(lab_results),
                'totalDrugOrders': len(drug_orders),
                'totalDrugs': len(drugs),
                'totalSales': len(sales),
                'totalPayments': len(payments),
                'totalWalkInServices': len(services)
            },
            'financial': {
                # Completed payments are the only authoritative revenue signal;
                # sales and walk-in revenue overlap with them and are breakdowns only
                'totalRevenue': payments_revenue,
                'salesRevenue': sum(s.total for s in sales),
                'paymentsRevenue': payments_revenue,
                'walkInServicesRevenue': walk_in_revenue(services),
                'inventoryValue': inventory_value(drugs)
            },
            'performance': {
                'labCompletionRate': percentage(
                    sum(1 for lr in lab_results if lr.status == LabStatus.COMPLETED), len(lab_results)
                ),
                'orderDispenseRate': percentage(
                    sum(1 for o in drug_orders if o.status == OrderStatus.DISPENSED), len(drug_orders)
                ),
                'paymentSuccessRate': percentage(len(completed_payments), len(payments)),
                'walkInServicesSuccessRate': percentage(
                    sum(1 for s in services if s.payment_status == PaymentStatus.COMPLETED), len(services)
                )
            }
        }

    def generate(self, window: DateRange) -> Dict[str, Any]:
        return self.summarize(self.fetch_all(window))


class ReportRequestHandler:
    """Resolves a report request into the {success, data, meta} envelope"""

    ERROR_MESSAGE = "Failed to generate report"

    def __init__(
        self,
        service: ReportService,
        reports_config: Optional[ReportsConfig] = None,
        clock: Callable[[], datetime] = local_now
    ):
        self.service = service
        self.config = reports_config or ReportsConfig()
        self.clock = clock
        self.domain_reports: Dict[str, DomainReport] = {
            'patients': PatientReports(),
            'lab-results': LabResultReports(),
            'drug-orders': DrugOrderReports(),
            'inventories': InventoryReports(self.config.low_stock_threshold),
            'sales': SalesReports(),
            'payments': PaymentReports(),
            'walk-in-services': WalkInServiceReports(),
        }
        self.comprehensive = ComprehensiveReports(
            service,
            timeout=self.config.fetch_timeout_seconds,
            max_workers=self.config.max_workers
        )

    def generate(self, report_type: str, window: DateRange) -> Dict[str, Any]:
        """Generate report data for an already normalised report type"""
        if report_type == 'comprehensive':
            return self.comprehensive.generate(window)
        return self.domain_reports[report_type].generate(self.service, window)

    def handle(
        self,
        report_type: Optional[str] = None,
        date_range: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Handle a report request.

        Unknown report types and range keys fall back to the configured
        defaults. Any source failure fails the whole request.

        Returns:
            {'success': True, 'data': ..., 'meta': ...} or
            {'success': False, 'error': ...}
        """
        report_type = normalize_report_type(report_type, self.config.default_report_type)
        date_range = normalize_date_range(date_range, self.config.default_date_range)
        now = self.clock().astimezone().replace(tzinfo=None)
        window = resolve_date_range(date_range, start_date, end_date, now=now)

        start_time = time.time()
        try:
            data = self.generate(report_type, window)
        except ReportDataError as e:
            logger.error(
                f"Error generating {report_type} report:\n"
                f"  Source: {e.source}\n"
                f"  Message: {str(e)}",
                exc_info=True
            )
            return {'success': False, 'error': self.ERROR_MESSAGE}
        except Exception as e:
            logger.error(
                f"Unexpected error generating {report_type} report:\n"
                f"  Exception Type: {type(e).__name__}\n"
                f"  Message: {str(e)}",
                exc_info=True
            )
            return {'success': False, 'error': self.ERROR_MESSAGE}

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Generated {report_type} report for {window.start.isoformat()} - "
            f"{window.end.isoformat()} in {elapsed_ms:.1f}ms"
        )

        return {
            'success': True,
            'data': data,
            'meta': {
                'reportType': report_type,
                'dateRange': date_range,
                'startDate': local_iso(window.start),
                'endDate': local_iso(window.end),
                'generatedAt': local_iso(self.clock())
            }
        }
