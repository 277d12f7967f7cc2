"""
Ledger stores for confirmed daily totals.

Both stores upsert one row per (sender, date): an existing row for the
date is overwritten, otherwise a new row is appended. Rows are matched on
exact equality of the "YYYY-MM-DD" date string.
"""

import logging

import requests
from sqlalchemy.exc import SQLAlchemyError

import config
from errors import LedgerError
from models import DailyTotalRecord, make_engine, make_session_factory

logger = logging.getLogger(__name__)


class AppsScriptLedger:
    """Posts rows to a Google Apps Script web app bound to a spreadsheet."""

    def __init__(self, url: str, timeout: float = 30):
        self.url = url
        self.timeout = timeout

    def upsert(self, sender: str, row: dict) -> dict:
        payload = dict(row, user=sender)
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise LedgerError(f"Sheet unreachable: {e}", cause=e)

        if not response.ok:
            raise LedgerError(f"Sheet rejected the row ({response.status_code})")

        # Apps Script answers 200 with {"success": false, "error": ...} on failure
        try:
            result = response.json()
        except ValueError:
            result = {}
        if isinstance(result, dict) and result.get("success") is False:
            raise LedgerError(f"Sheet error: {result.get('error', 'unknown')}")

        logger.info(f"Saved {row['date']} for {sender} to sheet")
        return row


class SqlLedger:
    """Keeps rows in the daily_totals table."""

    def __init__(self, engine):
        self.session_factory = make_session_factory(engine)

    def upsert(self, sender: str, row: dict) -> dict:
        db = self.session_factory()
        try:
            record = db.query(DailyTotalRecord).filter(
                DailyTotalRecord.user_id == sender,
                DailyTotalRecord.date == row["date"]
            ).first()

            if record is None:
                record = DailyTotalRecord(user_id=sender, date=row["date"])
                db.add(record)

            record.calories = row["calories"]
            record.protein = row["protein"]
            record.carbs = row["carbs"]
            record.fat = row["fat"]
            record.fiber = row["fiber"]
            record.meals = row["meals"]
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise LedgerError(f"Database error: {e}", cause=e)
        finally:
            db.close()

        logger.info(f"Saved {row['date']} for {sender} to daily_totals")
        return row


def build_ledger():
    if config.GOOGLE_APPS_SCRIPT_URL:
        return AppsScriptLedger(config.GOOGLE_APPS_SCRIPT_URL)
    return SqlLedger(make_engine(config.DATABASE_URL))
