"""Type definitions shared by runners and workflows.

ResourceInventory is the per-cycle diff container. It is generic over the
workflow's config type and state type, so one workflow's CurrentState and
DesiredState are checked against the same shape.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

C = TypeVar("C")
S = TypeVar("S")


# =============================================================================
# CYCLE PHASES
# =============================================================================

class CyclePhase(str, Enum):
    """Phase reached by one integration cycle."""
    CREATED = "created"
    SETUP_DONE = "setup_done"
    CURRENT_CAPTURED = "current_captured"
    DESIRED_CAPTURED = "desired_captured"
    RECONCILED = "reconciled"


# =============================================================================
# RESOURCE INVENTORY
# =============================================================================

@dataclass
class ResourceState(Generic[C, S]):
    """One reconciliation target.

    config is the declaration that produced the target (optional), current
    is written by CurrentState and desired by DesiredState. A target with
    current set and desired unset is a candidate for removal.
    """
    config: Optional[C] = None
    current: Optional[S] = None
    desired: Optional[S] = None

    @property
    def is_orphan(self) -> bool:
        return self.current is not None and self.desired is None

    @property
    def is_new(self) -> bool:
        return self.current is None and self.desired is not None


class ResourceInventory(Generic[C, S]):
    """Mapping of target key to exactly one ResourceState.

    Created fresh for each cycle and discarded after reconcile.
    """

    def __init__(self) -> None:
        self.state: Dict[str, ResourceState[C, S]] = {}

    def add(self, target: str, resource_state: ResourceState[C, S]) -> None:
        self.state[target] = resource_state

    def get(self, target: str) -> Optional[ResourceState[C, S]]:
        """Return the state for target, or None on a miss."""
        return self.state.get(target)

    def ensure(self, target: str) -> ResourceState[C, S]:
        """Return the state for target, registering an empty one if missing."""
        resource_state = self.state.get(target)
        if resource_state is None:
            resource_state = ResourceState()
            self.state[target] = resource_state
        return resource_state

    def items(self) -> Iterator[Tuple[str, ResourceState[C, S]]]:
        return iter(list(self.state.items()))

    def orphans(self) -> List[str]:
        return [target for target, rs in self.state.items() if rs.is_orphan]

    def __contains__(self, target: object) -> bool:
        return target in self.state

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.state))

    def __len__(self) -> int:
        return len(self.state)

    def __repr__(self) -> str:
        return f"ResourceInventory(targets={sorted(self.state)})"


# =============================================================================
# VALIDATION
# =============================================================================

@dataclass(frozen=True)
class ValidationError:
    """A problem found by a Validation for one item."""
    path: str
    validation: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "validation": self.validation, "error": self.error}


def concat_validation_errors(
    a: List[ValidationError],
    b: List[ValidationError],
) -> List[ValidationError]:
    """Merge two lists of validation errors into a new list."""
    return [*a, *b]


@dataclass
class CycleResult:
    """Outcome of one runner cycle."""
    status: int
    phase: CyclePhase
    duration_seconds: float
    error: Optional[BaseException] = None
    skipped: bool = False


@dataclass
class ValidationResult:
    """Outcome of one validation run."""
    status: int
    duration_seconds: float
    errors: List[ValidationError] = field(default_factory=list)
    error: Optional[BaseException] = None
    setup_done: bool = False
    skipped: bool = False


__all__ = [
    "CyclePhase",
    "ResourceState",
    "ResourceInventory",
    "ValidationError",
    "concat_validation_errors",
    "CycleResult",
    "ValidationResult",
]
