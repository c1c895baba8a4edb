"""
Service Report Models
=====================
ServiceReport   — structured per-service record, built once every test case
                  of that service has settled. Feeds the comparison table.
ServiceResult   — what a ServiceRunner hands back to the Orchestrator: either
                  a report, or the error and stage that broke the pipeline.
"""
from typing import Dict, Optional
from pydantic import BaseModel

from .outcome import Classification


class ServiceReport(BaseModel):
    service_name: str
    results: Dict[str, Classification] = {}
    healthcheck_up: bool = False
    equation_echoed: bool = False
    error_messages_present: bool = False


class ServiceResult(BaseModel):
    service_name: str
    report: Optional[ServiceReport] = None
    error: Optional[str] = None
    failed_stage: Optional[str] = None

    @property
    def broken(self) -> bool:
        return self.report is None
