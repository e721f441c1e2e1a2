"""Chain machine - matches its members one after another."""

from typing import Optional, Sequence

from structure_guard.core.state_machine import StateMachine
from structure_guard.errors import GrammarConfigurationError


class ChainStateMachine(StateMachine):
    """
    Match each member in order.

    The chain is optional when every member is optional.
    """

    def __init__(
        self,
        state_machines: Sequence[StateMachine],
        is_optional: bool = False,
        is_case_sensitive: bool = True,
        identifier: Optional[str] = None,
    ):
        if not state_machines:
            raise GrammarConfigurationError("ChainStateMachine needs at least one member")

        self.state_machines = list(state_machines)
        last = len(self.state_machines) - 1
        state_graph = {
            index: [(state_machine, "$" if index == last else index + 1)]
            for index, state_machine in enumerate(self.state_machines)
        }
        super().__init__(
            state_graph,
            is_optional=is_optional or all(sm.is_optional for sm in self.state_machines),
            is_case_sensitive=is_case_sensitive,
            identifier=identifier,
        )

    def __repr__(self) -> str:
        if self.identifier:
            return f"ChainStateMachine({self.identifier!r})"
        return f"ChainStateMachine({self.state_machines!r})"
