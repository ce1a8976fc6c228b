"""Core domain models.

The engine, the builder and the generation adapter all operate on these
types. Pydantic is used for validation and serialisation at every data
boundary: a payload either validates completely or raises
``pydantic.ValidationError`` listing every offending field.

JSON documents use camelCase keys (``nextSceneId``); Python code uses the
snake_case attribute names. Both spellings are accepted on input. Dump with
``model_dump(by_alias=True, exclude_none=True)`` to get the wire format back.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    JsonValue,
    StrictFloat,
    StrictInt,
    ValidationInfo,
    model_validator,
)
from pydantic.alias_generators import to_camel

Position = Literal["left", "center", "right"]
EffectType = Literal["shake", "fade", "flash", "transition"]
Number = StrictInt | StrictFloat


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CharacterPlacement(_Model):
    """A character on screen. Several characters may share a position."""

    id: str
    name: str
    position: Position
    expression: str | None = None
    sprite: str | None = None


class Dialogue(_Model):
    speaker: str | None = None
    text: str  # may be empty
    voice: str | None = None


class Choice(_Model):
    """A player-facing option, optionally gated by a condition expression."""

    text: str
    next_scene_id: str
    condition: str | None = None


class Effect(_Model):
    """Presentation directive. Passed through untouched by the engine."""

    type: EffectType
    duration: Number | None = None
    intensity: Number | None = None


class Scene(_Model):
    """A single narrative beat.

    ``choices`` drives player advancement; ``next_scene_id`` is the linear
    successor used by ``NovelEngine.next_scene()``. A scene with neither is
    terminal.
    """

    id: str
    background: str | None = None
    music: str | None = None
    characters: list[CharacterPlacement] | None = None
    dialogue: Dialogue
    choices: list[Choice] | None = None
    next_scene_id: str | None = None
    effects: list[Effect] | None = None

    def successor_ids(self) -> list[str]:
        """Every scene id this scene can lead to, choices first."""
        ids = [c.next_scene_id for c in self.choices or []]
        if self.next_scene_id:
            ids.append(self.next_scene_id)
        return ids


class Route(_Model):
    """Named sub-path. Authoring metadata, not consulted by traversal."""

    id: str
    name: str
    start_scene_id: str
    end_scene_id: str


class Novel(_Model):
    """The full story graph plus metadata.

    Validation context keys (see ``load_novel``):

      check_references     reject choices/successors pointing at unknown ids
      allow_duplicate_ids  accept repeated scene ids (first match wins)
    """

    id: str
    title: str
    description: str
    author: str
    tags: list[str]
    cover: str | None = None
    scenes: list[Scene]
    variables: dict[str, JsonValue] | None = None
    routes: list[Route] | None = None

    @model_validator(mode="after")
    def check_scene_graph(self, info: ValidationInfo) -> Novel:
        context = info.context or {}
        problems: list[str] = []

        if not context.get("allow_duplicate_ids", False):
            seen: set[str] = set()
            duplicates: list[str] = []
            for scene in self.scenes:
                if scene.id in seen and scene.id not in duplicates:
                    duplicates.append(scene.id)
                seen.add(scene.id)
            if duplicates:
                problems.append(f"duplicate scene ids: {', '.join(duplicates)}")

        if context.get("check_references", False):
            dangling = self.dangling_references()
            if dangling:
                listed = ", ".join(f"{src} -> {dst}" for src, dst in dangling)
                problems.append(f"unknown scene references: {listed}")

        if problems:
            raise ValueError("; ".join(problems))
        return self

    def get_scene(self, scene_id: str) -> Scene | None:
        """Return the first scene with ``scene_id``, or None."""
        return next((s for s in self.scenes if s.id == scene_id), None)

    def scene_ids(self) -> list[str]:
        return [s.id for s in self.scenes]

    def dangling_references(self) -> list[tuple[str, str]]:
        """(scene_id, target_id) pairs whose target is not a scene of this novel.

        Route endpoints are checked too, reported under the route id.
        """
        known = set(self.scene_ids())
        dangling: list[tuple[str, str]] = []
        for scene in self.scenes:
            for target in scene.successor_ids():
                if target not in known:
                    dangling.append((scene.id, target))
        for route in self.routes or []:
            for target in (route.start_scene_id, route.end_scene_id):
                if target not in known:
                    dangling.append((route.id, target))
        return dangling

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def load_novel(
    payload: Mapping[str, Any] | str | bytes,
    *,
    check_references: bool = False,
    allow_duplicate_ids: bool = False,
) -> Novel:
    """Validate an untyped payload (mapping or JSON text) into a Novel.

    Raises ``pydantic.ValidationError`` when the payload does not conform.
    """
    context = {
        "check_references": check_references,
        "allow_duplicate_ids": allow_duplicate_ids,
    }
    if isinstance(payload, (str, bytes)):
        return Novel.model_validate_json(payload, context=context)
    return Novel.model_validate(payload, context=context)
