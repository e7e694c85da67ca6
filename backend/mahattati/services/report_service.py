"""
Admin reports built with pandas.

Each report loads the matching rows into a DataFrame and aggregates them;
the same frames feed the xlsx export.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional
import pandas as pd
from sqlalchemy.orm import Session
from mahattati.core.exceptions import ValidationError
from mahattati.models.ad import Ad
from mahattati.models.payment import Payment
from mahattati.models.subscription import Subscription
from mahattati.models.user import User
from mahattati.utils.dates import utcnow

logger = logging.getLogger(__name__)

REPORT_TYPES = ("users", "ads", "payments", "subscriptions")


def _date_range(query, column, start_date: Optional[date], end_date: Optional[date]):
    if start_date is not None:
        query = query.filter(column >= datetime.combine(start_date, time.min))
    if end_date is not None:
        # end_date is inclusive
        query = query.filter(column < datetime.combine(end_date + timedelta(days=1), time.min))
    return query


def _counts(df: pd.DataFrame, column: str) -> Dict[str, int]:
    if df.empty:
        return {}
    return {str(k): int(v) for k, v in df[column].value_counts().sort_index().items()}


class ReportService:
    @staticmethod
    def load_frame(
        db: Session,
        report_type: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> pd.DataFrame:
        """Raw rows for a report type as a DataFrame"""
        if report_type == "users":
            columns = [User.id, User.name, User.email, User.role, User.email_verified, User.created_at]
            model = User
        elif report_type == "ads":
            columns = [Ad.id, Ad.user_id, Ad.title, Ad.city, Ad.region, Ad.status,
                       Ad.views_count, Ad.is_promoted, Ad.created_at]
            model = Ad
        elif report_type == "payments":
            columns = [Payment.id, Payment.user_id, Payment.amount, Payment.currency, Payment.gateway,
                       Payment.payment_type, Payment.status, Payment.created_at]
            model = Payment
        elif report_type == "subscriptions":
            columns = [Subscription.id, Subscription.user_id, Subscription.type, Subscription.start_date,
                       Subscription.end_date, Subscription.payment_status, Subscription.created_at]
            model = Subscription
        else:
            raise ValidationError.for_field(
                "type", f"Invalid report type. Allowed: {', '.join(REPORT_TYPES)}"
            )

        query = _date_range(db.query(*columns), model.created_at, start_date, end_date)
        rows = query.all()
        return pd.DataFrame([tuple(r) for r in rows], columns=[c.key for c in columns])

    @staticmethod
    def summarize(report_type: str, df: pd.DataFrame) -> Dict[str, Any]:
        summary: Dict[str, Any] = {"total": int(len(df))}

        if report_type == "users":
            summary["by_role"] = _counts(df, "role")
        elif report_type == "ads":
            summary["by_status"] = _counts(df, "status")
            summary["promoted"] = int(df["is_promoted"].fillna(False).astype(bool).sum()) if not df.empty else 0
        elif report_type == "payments":
            if df.empty:
                summary["by_gateway_status"] = []
                summary["total_revenue"] = 0.0
            else:
                grouped = (
                    df.groupby(["gateway", "status"])
                    .agg(count=("id", "size"), total_amount=("amount", "sum"))
                    .reset_index()
                )
                summary["by_gateway_status"] = [
                    {
                        "gateway": row["gateway"],
                        "status": row["status"],
                        "count": int(row["count"]),
                        "total_amount": round(float(row["total_amount"]), 2),
                    }
                    for row in grouped.to_dict("records")
                ]
                completed = df[df["status"] == "completed"]
                summary["total_revenue"] = round(float(completed["amount"].sum()), 2)
        elif report_type == "subscriptions":
            summary["by_status"] = _counts(df, "payment_status")
            if df.empty:
                summary["active"] = 0
            else:
                today = utcnow().date()
                end_dates = pd.to_datetime(df["end_date"]).dt.date
                summary["active"] = int(((df["payment_status"] == "paid") & (end_dates >= today)).sum())

        return summary

    def build(
        self,
        db: Session,
        report_type: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        df = self.load_frame(db, report_type, start_date, end_date)
        logger.info("Built %s report over %d rows", report_type, len(df))
        return {
            "type": report_type,
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
            "generated_at": utcnow().isoformat(),
            "data": self.summarize(report_type, df),
        }


report_service = ReportService()
