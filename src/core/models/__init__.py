"""
Domain models — Pydantic types for the provisioning engine.

All models are re-exported here for convenient access:

    from src.core.models import Step, StepKind, PlanResult, ProvisionRequest
"""

from src.core.models.facts import FactQuery, HostFacts, Platform, ProbeCommand
from src.core.models.request import PackageSpec, ProvisionRequest, Settings
from src.core.models.result import PlanResult, StepStatus
from src.core.models.state import RunState
from src.core.models.step import (
    BlockTarget,
    CloneTarget,
    CommandTarget,
    FileTarget,
    GroupTarget,
    LinePatchTarget,
    LoginShellTarget,
    PackagesTarget,
    ServiceTarget,
    Step,
    StepKind,
)

__all__ = [
    "BlockTarget",
    "CloneTarget",
    "CommandTarget",
    # facts.py
    "FactQuery",
    "FileTarget",
    "GroupTarget",
    "HostFacts",
    "LinePatchTarget",
    "LoginShellTarget",
    "PackageSpec",
    "PackagesTarget",
    # result.py
    "PlanResult",
    "Platform",
    "ProbeCommand",
    # request.py
    "ProvisionRequest",
    # state.py
    "RunState",
    "ServiceTarget",
    "Settings",
    # step.py
    "Step",
    "StepKind",
    "StepStatus",
]
