"""Schemas for the attendance backfill"""
from datetime import date
from typing import Optional

from pydantic import BaseModel


class BackfillRequest(BaseModel):
    # Defaults to today; backfill always stops the day before
    as_of: Optional[date] = None


class BackfillResult(BaseModel):
    interns_processed: int
    records_created: int
