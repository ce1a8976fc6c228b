"""Handlebars prompt rendering for scene generation."""

from collections.abc import Callable
from typing import Any

import pybars


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Built-in templates ───────────────────────────────────
#
# Triple-stash everywhere: prompts are plain text, not HTML.

INTRODUCTION_TEMPLATE = (
    "Create an introduction scene for: {{{prompt}}}"
    "{{#if character}}\n"
    "The scene features {{{character.name}}}"
    "{{#if character.description}}: {{{character.description}}}{{/if}}"
    "{{#if character.personality}} (personality: {{{character.personality}}}){{/if}}."
    "{{/if}}"
)

CONTINUATION_TEMPLATE = (
    "Continue the visual novel \"{{{prompt}}}\" with the next scene: {{{beat}}}"
    "{{#if previous}}\nThe previous scene ({{{previous.id}}}) ended with: "
    "{{{previous.dialogue.text}}}{{/if}}"
    "{{#if character}}\nKeep {{{character.name}}} in character.{{/if}}"
)

SCENE_TEMPLATE = """You are writing one scene of a visual novel.

{{{description}}}

Reply with a single JSON object and nothing else, using this shape:
{
  "id": "<short unique scene id>",
  "background": "<optional background description>",
  "characters": [{"id": "<id>", "name": "<name>", "position": "left|center|right", "expression": "<optional>"}],
  "dialogue": {"speaker": "<optional speaker name>", "text": "<what is said or narrated>"},
  "choices": [{"text": "<player option>", "nextSceneId": "<scene id>"}],
  "nextSceneId": "<optional id of the following scene>"
}
{{#if used_ids}}Scene ids already used: {{{used_ids}}}.
{{/if}}"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e
