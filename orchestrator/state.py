# ============================================================================
# RUN STATE TABLE
# ============================================================================
# STATUS: Core - Owned RunStatus table for one run
# PURPOSE: Single place where instance status changes
# CREATED: 19 OCT 2026
# ============================================================================
"""
Run State Table

Holds one InstanceState per job instance of a run. Only the scheduler's
coordinating task mutates it, and only through the transition methods
below, which reject illegal transitions with InvalidTransition.
"""

from typing import Dict, Iterable, List, Optional

from core.contracts import RunStatus
from core.models.instance import JobInstance
from core.models.instance_state import InstanceState


class RunStateTable:
    """Status of every instance in a run."""

    def __init__(self, instances: Iterable[JobInstance]):
        self._states: Dict[str, InstanceState] = {
            instance.instance_id: InstanceState(
                instance_id=instance.instance_id,
                job_id=instance.job_id,
            )
            for instance in instances
        }

    @classmethod
    def for_plan(cls, plan) -> "RunStateTable":
        """Fresh table with every instance of the plan PENDING."""
        return cls(plan.instances)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, instance_id: str) -> bool:
        return instance_id in self._states

    def get(self, instance_id: str) -> InstanceState:
        try:
            return self._states[instance_id]
        except KeyError:
            raise KeyError(f"Unknown instance: {instance_id}") from None

    def status(self, instance_id: str) -> RunStatus:
        return self.get(instance_id).status

    def states(self) -> List[InstanceState]:
        return list(self._states.values())

    def with_status(self, *statuses: RunStatus) -> List[str]:
        return [i for i, s in self._states.items() if s.status in statuses]

    def non_terminal(self) -> List[str]:
        return [i for i, s in self._states.items() if not s.status.is_terminal()]

    def all_terminal(self) -> bool:
        return not self.non_terminal()

    def counts(self) -> Dict[str, int]:
        result: Dict[str, int] = {}
        for state in self._states.values():
            result[state.status.value] = result.get(state.status.value, 0) + 1
        return result

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_blocked(self, instance_id: str) -> None:
        self.get(instance_id).mark_blocked()

    def mark_running(self, instance_id: str) -> None:
        self.get(instance_id).mark_running()

    def mark_succeeded(self, instance_id: str) -> None:
        self.get(instance_id).mark_succeeded()

    def mark_failed(
        self,
        instance_id: str,
        error_message: str,
        exit_code: Optional[int] = None,
        failed_step: Optional[str] = None,
    ) -> None:
        self.get(instance_id).mark_failed(error_message, exit_code=exit_code, failed_step=failed_step)

    def mark_skipped(self, instance_id: str, reason: str) -> None:
        self.get(instance_id).mark_skipped(reason)


__all__ = ["RunStateTable"]
