"""
Invoice command workflow (``showroom_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects describing the state machine a voice command moves
through, and the single workflow definition the coordinator enforces.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* POSTED is reachable only through POSTING, the state the posting unit
  runs in.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CommandState(str, Enum):
    """Lifecycle of one voice command."""

    AWAITING_REGISTRATION = "awaiting_registration"
    DRAFTING = "drafting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    POSTING = "posting"
    POSTED = "posted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: CommandState
    to_state: CommandState
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""

    name: str
    description: str
    initial_state: CommandState
    states: tuple[CommandState, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[CommandState, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"Initial state {self.initial_state} not in workflow states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"Transition {t.action} references unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(f"Terminal state {t.from_state} has outgoing transition {t.action}")

    def find(self, from_state: CommandState, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None


S = CommandState

INVOICE_COMMAND_WORKFLOW = Workflow(
    name="voice_invoice_command",
    description="Spoken sales command from draft to posted invoice",
    initial_state=S.DRAFTING,
    states=tuple(CommandState),
    transitions=(
        Transition(S.DRAFTING, S.AWAITING_REGISTRATION, "require_registration"),
        Transition(S.AWAITING_REGISTRATION, S.DRAFTING, "register"),
        Transition(S.AWAITING_REGISTRATION, S.REJECTED, "reject"),
        Transition(S.DRAFTING, S.AWAITING_CONFIRMATION, "present"),
        Transition(S.DRAFTING, S.REJECTED, "reject"),
        Transition(S.AWAITING_CONFIRMATION, S.POSTING, "confirm"),
        Transition(S.AWAITING_CONFIRMATION, S.REJECTED, "reject"),
        Transition(S.POSTING, S.POSTED, "post"),
        Transition(S.POSTING, S.AWAITING_CONFIRMATION, "posting_failed"),
    ),
    terminal_states=(S.POSTED, S.REJECTED),
)
