# ============================================================================
# RUN REPORT MODEL
# ============================================================================
# STATUS: Core model - Aggregated run result
# PURPOSE: Per-instance outcome plus overall gate verdict
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: InstanceReport, RunReport, SUMMARY_TAIL_LINES
# DEPENDENCIES: pydantic
# ============================================================================
"""
Run Report Models

The report is the single output of a run: one InstanceReport per job
instance and the overall status computed by the gate. It serializes to
JSON for tooling and renders a plain-text summary for humans.
"""

from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from core.contracts import OverallStatus, RunStatus


_STATUS_MARKS = {
    RunStatus.SUCCEEDED: "ok",
    RunStatus.FAILED: "FAIL",
    RunStatus.SKIPPED: "skip",
    RunStatus.PENDING: "?",
    RunStatus.BLOCKED: "?",
    RunStatus.RUNNING: "?",
}

# Output lines shown per failed instance in the summary
SUMMARY_TAIL_LINES = 20


class InstanceReport(BaseModel):
    """Outcome of one job instance."""
    instance_id: str
    job_id: str
    display_name: str
    status: RunStatus
    allow_failure: bool = False
    exit_code: Optional[int] = None
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    skip_reason: Optional[str] = None
    duration_seconds: Optional[float] = None
    output_tail: List[str] = Field(default_factory=list)
    log_file: Optional[str] = None
    workspace: Optional[str] = None

    @computed_field
    @property
    def is_allowed_failure(self) -> bool:
        """Failed, but marked best-effort."""
        return self.status == RunStatus.FAILED and self.allow_failure


class RunReport(BaseModel):
    """Aggregated result of a workflow run."""
    run_id: str
    workflow: str
    trigger: Optional[str] = None
    overall_status: OverallStatus
    instances: List[InstanceReport] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @computed_field
    @property
    def exit_code(self) -> int:
        """0 on overall success, 1 otherwise."""
        return self.overall_status.exit_code

    def status_counts(self) -> Dict[str, int]:
        counts = Counter(i.status.value for i in self.instances)
        return dict(counts)

    def get(self, instance_id: str) -> InstanceReport:
        for report in self.instances:
            if report.instance_id == instance_id:
                return report
        raise KeyError(f"No instance '{instance_id}' in run {self.run_id}")

    def for_job(self, job_id: str) -> List[InstanceReport]:
        return [i for i in self.instances if i.job_id == job_id]

    def render_summary(self) -> str:
        """Human-readable summary table."""
        header = f"Workflow '{self.workflow}' run {self.run_id}"
        if self.trigger:
            header += f" (trigger: {self.trigger})"

        lines = [header, ""]
        width = max((len(i.display_name) for i in self.instances), default=10)
        for report in self.instances:
            mark = _STATUS_MARKS[report.status]
            note = ""
            if report.is_allowed_failure:
                note = "allowed failure"
            elif report.status == RunStatus.FAILED:
                note = report.error_message or ""
            elif report.status == RunStatus.SKIPPED:
                note = report.skip_reason or ""
            duration = (
                f"{report.duration_seconds:7.1f}s"
                if report.duration_seconds is not None and report.status != RunStatus.SKIPPED
                else " " * 8
            )
            lines.append(f"  {mark:<5} {report.display_name:<{width}} {duration}  {note}".rstrip())
            if report.status == RunStatus.FAILED:
                for line in report.output_tail[-SUMMARY_TAIL_LINES:]:
                    lines.append(f"        | {line}".rstrip())
                if report.log_file:
                    lines.append(f"        log: {report.log_file}")

        for warning in self.warnings:
            lines.append(f"  warning: {warning}")

        counts = ", ".join(f"{n} {s}" for s, n in sorted(self.status_counts().items()))
        lines.append("")
        lines.append(f"Overall: {self.overall_status.value.upper()} ({counts or 'no instances'})")
        return "\n".join(lines)


__all__ = ["InstanceReport", "RunReport", "SUMMARY_TAIL_LINES"]
