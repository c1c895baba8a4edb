"""
Service Run State
=================
Mutable per-service state, owned exclusively by one ServiceRunner.

Fields: spec, stage, container (set only once the container is running),
workspace_path, report, error.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

from harness.models.service_spec import ServiceSpec
from harness.models.service_report import ServiceReport

if TYPE_CHECKING:
    from harness.executor.container_runtime import ContainerHandle


class Stage(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    CLONING = "cloning"
    BUILDING = "building"
    RUNNING = "running"
    INSPECTING = "inspecting"
    HEALTHCHECKING = "healthchecking"
    TESTING = "testing"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ServiceRun:
    spec: ServiceSpec
    stage: Stage = Stage.IDLE
    workspace_path: str = ""
    container: Optional["ContainerHandle"] = None
    report: Optional[ServiceReport] = None
    error: Optional[str] = None

    @property
    def container_name(self) -> Optional[str]:
        return self.container.name if self.container else None
