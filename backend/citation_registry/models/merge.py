"""
Driver Merge Models
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .failure import ServiceFailure


class SkippedItem(BaseModel):
    """Duplicate id left out of a merge without failing the batch"""
    driver_id: int
    reason: str


class MergeResult(BaseModel):
    """Outcome of one merge call (all-or-nothing)"""
    success: bool
    primary_driver_id: Optional[int] = None
    merged_driver_ids: List[int] = Field(default_factory=list)
    citations_relinked: int = 0
    skipped: List[SkippedItem] = Field(default_factory=list)
    message: str = ""
    failure: Optional[ServiceFailure] = None
