"""Generation adapter — assembles a Novel from an external scene generator.

The host supplies the generator as an async callable:

    async def generate_scene(description: str) -> Scene | Mapping: ...

It is the engine's only dependency on a content generator. Calls are made
sequentially, introduction first and then one per outline beat, because
each description may build on the scene before it. Whatever the callback
raises propagates unchanged: no placeholder scenes, no retries.

LLMSceneGenerator is a ready-made callback that asks an LLM (see llm.py)
for a scene as JSON.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from novel_engine.builder import NovelBuilder
from novel_engine.llm import LLM
from novel_engine.models import Novel, Scene
from novel_engine.prompts import (
    CONTINUATION_TEMPLATE,
    INTRODUCTION_TEMPLATE,
    SCENE_TEMPLATE,
    render_prompt,
)

logger = logging.getLogger(__name__)

GENERATED_TITLE = "Generated Visual Novel"
GENERATED_AUTHOR = "AI Generated"

SceneGenerator = Callable[[str], Awaitable[Scene | Mapping[str, Any]]]


class SceneGenerationError(ValueError):
    """Raised when an LLM reply cannot be turned into a Scene."""


def new_novel_id() -> str:
    """Timestamp plus a random suffix, so concurrent calls never collide."""
    return f"vn-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


async def generate_from_prompt(
    prompt: str,
    generate_scene: SceneGenerator,
    character_context: Mapping[str, Any] | None = None,
    *,
    outline: Iterable[str] = (),
) -> Novel:
    """Generate a Novel for ``prompt``.

    ``generate_scene`` is awaited once for the introduction and once per
    entry in ``outline``. When a new scene follows a scene that leads
    nowhere, the earlier scene gets ``next_scene_id`` pointing at it.
    ``character_context`` (name, description, personality) is woven into
    every scene description.
    """
    character = dict(character_context) if character_context else None

    builder = NovelBuilder().set_metadata(
        id=new_novel_id(),
        title=GENERATED_TITLE,
        description=prompt,
        author=GENERATED_AUTHOR,
    )

    description = render_prompt(
        INTRODUCTION_TEMPLATE, {"prompt": prompt, "character": character}
    )
    scenes = [_as_scene(await generate_scene(description))]

    for beat in outline:
        previous = scenes[-1]
        description = render_prompt(CONTINUATION_TEMPLATE, {
            "prompt": prompt,
            "beat": beat,
            "previous": previous.model_dump(),
            "character": character,
        })
        scene = _as_scene(await generate_scene(description))
        if not previous.choices and not previous.next_scene_id:
            scenes[-1] = previous.model_copy(update={"next_scene_id": scene.id})
        scenes.append(scene)

    for scene in scenes:
        builder.add_scene(scene)
    novel = builder.build()
    logger.info("Generated novel %s with %d scene(s)", novel.id, len(novel.scenes))
    return novel


def _as_scene(result: Scene | Mapping[str, Any]) -> Scene:
    if isinstance(result, Scene):
        return result
    return Scene.model_validate(result)


# ---------------------------------------------------------------------------
# LLM-backed scene generator
# ---------------------------------------------------------------------------

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_scene_reply(reply: str) -> Scene:
    """Pull the JSON object out of an LLM reply and validate it as a Scene."""
    match = _JSON_OBJECT_RE.search(reply)
    if match is None:
        raise SceneGenerationError("LLM reply contains no JSON object")
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as e:
        raise SceneGenerationError(f"LLM reply is not valid JSON: {e}") from e
    try:
        return Scene.model_validate(data)
    except ValidationError as e:
        raise SceneGenerationError(f"LLM reply is not a valid scene: {e}") from e


class LLMSceneGenerator:
    """Scene callback for generate_from_prompt() backed by an LLM.

    Remembers the ids it has produced and lists them in later prompts so the
    model can avoid reusing them.
    """

    def __init__(self, llm: LLM) -> None:
        self._llm = llm
        self._used_ids: list[str] = []

    async def __call__(self, description: str) -> Scene:
        prompt = render_prompt(SCENE_TEMPLATE, {
            "description": description,
            "used_ids": ", ".join(self._used_ids),
        })
        reply = await self._llm("scene", prompt)
        scene = parse_scene_reply(reply)
        self._used_ids.append(scene.id)
        return scene
