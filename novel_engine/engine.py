"""Narrative state machine — walks one player session through a Novel.

The engine owns two pieces of runtime state:

    variables  — deep copy of Novel.variables (or of a restored snapshot),
                 read by choice conditions and by the host's generators.
    history    — append-only list of visited scene ids.

The current scene is always computed: the last history entry, else the
novel's first scene, else None for a novel without scenes.

Every navigation call that cannot complete (unknown id, out-of-range index,
condition false) returns None and leaves history untouched. Exceptions are
reserved for programmer errors such as passing something that is not a Novel.

An engine is meant for exclusive use by one session. Concurrent calls into
the same instance must be serialised by the host.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from pydantic import BaseModel, Field, JsonValue

from novel_engine.conditions import evaluate
from novel_engine.models import Choice, Novel, Scene

logger = logging.getLogger(__name__)


class EngineState(BaseModel):
    """Serialisable session state. Persisting it is up to the host."""

    history: list[str] = Field(default_factory=list)
    variables: dict[str, JsonValue] = Field(default_factory=dict)


class NovelEngine:
    def __init__(self, novel: Novel, state: EngineState | None = None) -> None:
        if not isinstance(novel, Novel):
            raise TypeError(f"NovelEngine needs a Novel, got {type(novel).__name__}")
        self._novel = novel
        # first occurrence wins when legacy data repeats an id
        self._scenes: dict[str, Scene] = {}
        for scene in novel.scenes:
            self._scenes.setdefault(scene.id, scene)

        if state is None:
            self._history: list[str] = []
            self._variables: dict[str, Any] = self._default_variables()
        else:
            self._history = list(state.history)
            self._variables = copy.deepcopy(state.variables)

    @property
    def novel(self) -> Novel:
        return self._novel

    @property
    def variables(self) -> dict[str, Any]:
        """A copy of the variable store. Use set_variable() to change it."""
        return copy.deepcopy(self._variables)

    def _default_variables(self) -> dict[str, Any]:
        return copy.deepcopy(self._novel.variables or {})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_current_scene(self) -> Scene | None:
        if self._history:
            return self._scenes.get(self._history[-1])
        if self._novel.scenes:
            return self._novel.scenes[0]
        return None

    def get_history(self) -> list[str]:
        return list(self._history)

    def get_variable(self, name: str) -> Any:
        """Return the variable's value, or None when it was never set."""
        return self._variables.get(name)

    def available_choices(self) -> list[tuple[int, Choice]]:
        """Choices of the current scene whose condition currently holds.

        Each entry keeps the choice's original index for make_choice().
        """
        scene = self.get_current_scene()
        if scene is None or not scene.choices:
            return []
        return [
            (i, choice)
            for i, choice in enumerate(scene.choices)
            if self._choice_allowed(choice)
        ]

    def is_finished(self) -> bool:
        """True when the current scene leads nowhere (or there is none)."""
        scene = self.get_current_scene()
        return scene is None or (not scene.choices and not scene.next_scene_id)

    def snapshot(self) -> EngineState:
        return EngineState(
            history=list(self._history),
            variables=copy.deepcopy(self._variables),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def go_to_scene(self, scene_id: str) -> Scene | None:
        scene = self._scenes.get(scene_id)
        if scene is None:
            logger.debug("go_to_scene: no scene %r in novel %r", scene_id, self._novel.id)
            return None
        self._history.append(scene_id)
        return scene

    def make_choice(self, choice_index: int) -> Scene | None:
        scene = self.get_current_scene()
        if scene is None or not scene.choices:
            return None
        if not 0 <= choice_index < len(scene.choices):
            logger.debug("make_choice: index %d out of range in scene %r", choice_index, scene.id)
            return None

        choice = scene.choices[choice_index]
        if not self._choice_allowed(choice):
            logger.debug(
                "make_choice: condition %r blocks choice %d in scene %r",
                choice.condition, choice_index, scene.id,
            )
            return None
        return self.go_to_scene(choice.next_scene_id)

    def next_scene(self) -> Scene | None:
        scene = self.get_current_scene()
        if scene is None or not scene.next_scene_id:
            return None
        return self.go_to_scene(scene.next_scene_id)

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def set_variable(self, name: str, value: Any) -> None:
        self._variables[name] = value

    def reset(self) -> None:
        self._history = []
        self._variables = self._default_variables()

    def _choice_allowed(self, choice: Choice) -> bool:
        if not choice.condition:
            return True
        return evaluate(choice.condition, self._variables)
