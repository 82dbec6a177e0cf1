# reports/financial.py

from datetime import datetime

from analytics.forecast import compute_forecast
from analytics.periods import PeriodWindow
from analytics.rates import avg_payment_delay
from analytics.rollups import group_by_month, group_by_status
from models import (
    INVOICE_STATUS_ORDER, OPEN_STAGES, InvoiceStatus, is_invoice_overdue
)
from reports.base import BaseReport
from store.base import Query, eq, in_


class FinancialReport(BaseReport):
    """
    Finance :
    → ventilation des factures émises sur la période par statut
    → délai moyen de paiement
    → forecast pondéré du pipeline ouvert
    → CA encaissé par mois (factures payées uniquement)
    """

    def _get_name(self) -> str:
        return "financial"

    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        since = min(window.current_start, window.trend_start)

        return {
            "invoices": self._query(
                "invoices",
                window=("issued_at", window.current_start, window.current_end),
            ),
            "paid_invoices": self._query(
                "invoices",
                eq("status", InvoiceStatus.PAYEE.value),
                window=("paid_at", since, window.current_end),
            ),
            "open_leads": self._query("leads", in_("status", OPEN_STAGES)),
        }

    def _build(self, window: PeriodWindow, data: dict, now: datetime) -> dict:
        paid = data["paid_invoices"]

        def status_of(invoice) -> str:
            # émise et échue → en retard, même si le store ne l'a pas basculée
            if is_invoice_overdue(invoice, now):
                return InvoiceStatus.EN_RETARD.value
            return invoice.status

        by_status = group_by_status(
            data["invoices"],
            status_of,
            lambda i: i.total,
            order=INVOICE_STATUS_ORDER,
        )

        stages, forecast = compute_forecast(
            data["open_leads"], self.config.stage_weights
        )

        trend = group_by_month(
            paid, lambda i: i.paid_at, lambda i: i.total, window.buckets
        )

        return {
            "by_status": by_status.rows("status", sum_name="amount"),
            "avg_payment_delay": avg_payment_delay(
                i for i in paid if window.in_current(i.paid_at)
            ).to_dict(),
            "forecast": round(forecast, 2),
            "forecast_by_stage": [s.to_dict() for s in stages],
            "stage_weights_version": self.config.stage_weights_version,
            "revenue_by_month": [
                {"month": row["month"], "amount": row["sum"]} for row in trend
            ],
        }
