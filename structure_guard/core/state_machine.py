"""
State Machine - the grammar graph every structure is compiled into.

A grammar is a hierarchical state machine. Each state has an ordered list of
edges, and every edge is labelled with another (nested) state machine and the
state to move to once that nested machine has matched. Leaf machines (phrases,
character classes, regex patterns) have no edges and consume characters
themselves; composite machines (chains, unions, loops, JSON objects) are
nothing more than graphs of other machines.

Graph Shape:
    {
        0: [(PhraseStateMachine("{"), 1)],
        1: [(WhitespaceStateMachine(), 2)],
        2: [(KeyValueStateMachine(...), 3), (PhraseStateMachine("}"), "$")],
        ...
    }

Traversal Rules:
    - A stepper walks the graph; it never owns the graph.
    - An edge is entered by starting a sub-stepper on the nested machine.
    - Completion of a sub-stepper is deferred until the next token needs it,
      so a single token can be split across as many symbols as it spans.
    - Leaves report every accepting split of a token, not just the longest
      match, so a symbol that could go on or stop is tracked both ways.
    - Optional edges are skipped during branching, never during consumption.

Usage:
    ```python
    from structure_guard.core import StateMachine
    from structure_guard.types.base import PhraseStateMachine

    greeting = StateMachine(
        state_graph={
            0: [(PhraseStateMachine("hello"), 1)],
            1: [(PhraseStateMachine(" world"), "$")],
        }
    )

    steppers = greeting.get_steppers()
    steppers = StateMachine.advance_all(steppers, "hello wor")
    ```
"""

import logging
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional, Sequence, Tuple, Union

from structure_guard.core.stepper import Stepper

if TYPE_CHECKING:
    from structure_guard.core.trie import Vocabulary

logger = logging.getLogger(__name__)

StateId = Union[int, str]
Edge = Tuple["StateMachine", StateId]
StateGraph = Dict[StateId, Sequence[Edge]]


class StateMachine:
    """
    A node in the grammar graph.

    Attributes:
        start_state: State new steppers start in (default 0)
        end_states: States in which the machine has matched (default ["$"])
        is_optional: Whether an enclosing machine may skip this one
        is_case_sensitive: Whether literal matching respects case
        identifier: Optional label reported by output segmentation
    """

    def __init__(
        self,
        state_graph: Optional[StateGraph] = None,
        start_state: StateId = 0,
        end_states: Optional[Sequence[StateId]] = None,
        is_optional: bool = False,
        is_case_sensitive: bool = True,
        identifier: Optional[str] = None,
    ):
        self._state_graph = self._freeze(state_graph) if state_graph is not None else None
        self.start_state = start_state
        self.end_states = tuple(end_states) if end_states is not None else ("$",)
        self.is_optional = is_optional
        self.is_case_sensitive = is_case_sensitive
        self.identifier = identifier

    # ------------------------------------------------------------------
    # Graph access
    # ------------------------------------------------------------------

    @property
    def state_graph(self) -> Dict[StateId, Tuple[Edge, ...]]:
        """Edges per state. Built on first access for recursive grammars."""
        if self._state_graph is None:
            self._state_graph = self._freeze(self._build_state_graph())
        return self._state_graph

    def _build_state_graph(self) -> StateGraph:
        """Hook for machines whose graph refers back to themselves."""
        return {}

    @staticmethod
    def _freeze(state_graph: StateGraph) -> Dict[StateId, Tuple[Edge, ...]]:
        return {state: tuple(edges) for state, edges in state_graph.items()}

    def get_edges(self, state: StateId) -> List[Edge]:
        """Outgoing edges of a state (empty for unknown or end states)."""
        return list(self.state_graph.get(state, ()))

    def get_stepper_edges(self, stepper: Stepper) -> List[Edge]:
        """
        Edges available to a particular stepper.

        Machines whose legal edges depend on what was already matched (object
        keys, array item counts, loop counts) override this and filter using
        the stepper's history.
        """
        return self.get_edges(stepper.current_state)

    def can_finish(self, state: StateId, visited: FrozenSet[StateId] = frozenset()) -> bool:
        """
        Check if the machine can end in a state.

        A state can finish if it is an end state or reaches one through
        optional edges only.
        """
        if state in self.end_states:
            return True

        visited = visited | {state}
        for state_machine, target_state in self.get_edges(state):
            if (
                state_machine.is_optional
                and target_state not in visited
                and self.can_finish(target_state, visited)
            ):
                return True
        return False

    # ------------------------------------------------------------------
    # Steppers
    # ------------------------------------------------------------------

    def get_new_stepper(self, state: Optional[StateId] = None) -> Stepper:
        return Stepper(self, state)

    def get_steppers(self, state: Optional[StateId] = None) -> List[Stepper]:
        """
        Create the initial steppers for this machine.

        Returns one stepper per independently valid first branch. A machine
        with no edges (a leaf) returns a single fresh stepper.
        """
        stepper = self.get_new_stepper(state)
        return self.branch_stepper(stepper) or [stepper]

    def get_transitions(
        self,
        stepper: Stepper,
        visited: FrozenSet[StateId] = frozenset(),
    ) -> List[Tuple[Stepper, StateId]]:
        """
        Collect (sub_stepper, target_state) pairs reachable from a stepper.

        Optional edges contribute their own sub-steppers and, in addition, the
        transitions of the state they lead to. Each state is visited once per
        call so optional cycles terminate.
        """
        visited = visited | {stepper.current_state}
        transitions = []

        for state_machine, target_state in self.get_stepper_edges(stepper):
            for sub_stepper in state_machine.get_steppers():
                transitions.append((sub_stepper, target_state))

            if state_machine.is_optional and target_state not in visited:
                skipped = stepper.clone()
                skipped.current_state = target_state
                transitions.extend(self.get_transitions(skipped, visited))

        return transitions

    def branch_stepper(self, stepper: Stepper, token: Optional[str] = None) -> List[Stepper]:
        """
        Branch a stepper into one clone per available transition.

        Args:
            stepper: Stepper without an active sub-stepper
            token: When given, only keep branches whose sub-stepper could
                start on this token

        Returns:
            List of branched steppers
        """
        branches = []
        for sub_stepper, target_state in self.get_transitions(stepper):
            if token is not None and not sub_stepper.should_start_step(token):
                continue
            branches.append(stepper.start_step(sub_stepper, target_state))
        return branches

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def advance_stepper(self, stepper: Stepper, token: str) -> List[Stepper]:
        """
        Advance a stepper through this machine's graph with a token.

        Every returned stepper consumed a non-empty prefix of the token. If a
        suffix was left over, it is stored in `remaining_input` and the
        returned stepper is accepting, so the enclosing machine can complete
        it and carry on with the suffix.
        """
        if stepper.sub_stepper is None:
            advanced = []
            for branched in self.branch_stepper(stepper, token):
                advanced.extend(self._advance_sub_stepper(branched, token))
            return advanced

        return self._advance_sub_stepper(stepper, token)

    def _advance_sub_stepper(self, stepper: Stepper, token: str) -> List[Stepper]:
        sub_stepper = stepper.sub_stepper
        advanced = []

        for new_sub_stepper in sub_stepper.consume(token):
            remaining_input = new_sub_stepper.remaining_input
            if not remaining_input:
                advanced.append(stepper.start_step(new_sub_stepper, stepper.target_state))
                continue

            if not new_sub_stepper.has_reached_accept_state():
                continue

            new_sub_stepper.remaining_input = None
            moved = stepper.start_step(new_sub_stepper, stepper.target_state)
            for completed in moved.complete_step():
                advanced.extend(self._continue_from_state(completed, remaining_input))

        # A started sub-stepper that may stop here also hands the whole token
        # to the next edge; both readings stay alive until the input decides.
        if sub_stepper.has_started() and sub_stepper.has_reached_accept_state():
            for completed in stepper.complete_step():
                advanced.extend(self.advance_stepper(completed, token))

        return advanced

    def _continue_from_state(self, stepper: Stepper, remaining_input: str) -> List[Stepper]:
        advanced = self.advance_stepper(stepper, remaining_input)
        if stepper.has_reached_accept_state():
            finished = stepper.clone()
            finished.remaining_input = remaining_input
            advanced.append(finished)
        return advanced

    @staticmethod
    def advance_all(
        steppers: Sequence[Stepper],
        token: str,
        vocabulary: Optional["Vocabulary"] = None,
        token_healing: bool = True,
    ) -> List[Tuple[Stepper, str, bool]]:
        """
        Advance every stepper with a token, healing partial matches.

        A stepper that finishes the whole grammar before the token is
        exhausted is kept only if the consumed part of the token is itself a
        token in the vocabulary (token healing); the caller then emits that
        token instead of the sampled one.

        Args:
            steppers: Active steppers
            token: Token string to consume
            vocabulary: Vocabulary used to heal partial matches
            token_healing: Whether partial matches may be healed

        Returns:
            De-duplicated (stepper, consumed string, healed) triples
        """
        results: List[Tuple[Stepper, str, bool]] = []

        for stepper in steppers:
            for new_stepper in stepper.consume(token):
                if not new_stepper.remaining_input:
                    results.append((new_stepper, token, False))
                    continue

                if not token_healing or vocabulary is None:
                    continue

                consumed = token[: len(token) - len(new_stepper.remaining_input)]
                if consumed not in vocabulary:
                    logger.debug(f"Cannot heal {token!r}: {consumed!r} is not a token")
                    continue

                new_stepper.remaining_input = None
                results.append((new_stepper, consumed, True))

        unique: List[Tuple[Stepper, str, bool]] = []
        for result in results:
            if not any(result[0] == kept[0] for kept in unique):
                unique.append(result)
        return unique

    def __repr__(self) -> str:
        name = type(self).__name__
        if self.identifier:
            return f"{name}({self.identifier!r})"
        return f"{name}()"
