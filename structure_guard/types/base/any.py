"""Any machine - matches exactly one of its members."""

from typing import Optional, Sequence

from structure_guard.core.state_machine import StateMachine
from structure_guard.errors import GrammarConfigurationError


class AnyStateMachine(StateMachine):
    """
    Match any one member.

    Every member that fits the input is explored in parallel; nothing is
    resolved until the input rules alternatives out.
    """

    def __init__(
        self,
        state_machines: Sequence[StateMachine],
        is_optional: bool = False,
        is_case_sensitive: bool = True,
        identifier: Optional[str] = None,
    ):
        if not state_machines:
            raise GrammarConfigurationError("AnyStateMachine needs at least one member")

        self.state_machines = list(state_machines)
        super().__init__(
            {0: [(state_machine, "$") for state_machine in self.state_machines]},
            is_optional=is_optional or any(sm.is_optional for sm in self.state_machines),
            is_case_sensitive=is_case_sensitive,
            identifier=identifier,
        )

    def __repr__(self) -> str:
        if self.identifier:
            return f"AnyStateMachine({self.identifier!r})"
        return f"AnyStateMachine({self.state_machines!r})"
