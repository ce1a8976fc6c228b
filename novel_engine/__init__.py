"""Branching-narrative engine for visual novels."""

from novel_engine.builder import NovelBuilder
from novel_engine.conditions import ConditionError, evaluate
from novel_engine.engine import EngineState, NovelEngine
from novel_engine.generation import LLMSceneGenerator, SceneGenerationError, generate_from_prompt
from novel_engine.models import (
    CharacterPlacement,
    Choice,
    Dialogue,
    Effect,
    Novel,
    Route,
    Scene,
    load_novel,
)

__all__ = [
    "CharacterPlacement",
    "Choice",
    "ConditionError",
    "Dialogue",
    "Effect",
    "EngineState",
    "LLMSceneGenerator",
    "Novel",
    "NovelBuilder",
    "NovelEngine",
    "Route",
    "Scene",
    "SceneGenerationError",
    "evaluate",
    "generate_from_prompt",
    "load_novel",
]
