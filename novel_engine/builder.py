"""Incremental, validating constructor for a Novel.

Mutators only record raw data; nothing is validated until build(), which
runs the full Novel schema over the accumulated state. A builder is
single-writer and never hands out its partial state.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from novel_engine.models import Novel, Route, Scene


class NovelBuilder:
    def __init__(self) -> None:
        self._data: dict[str, Any] = {
            "scenes": [],
            "tags": [],
            "variables": {},
        }

    def set_metadata(
        self,
        id: str,
        title: str,
        description: str,
        author: str,
        cover: str | None = None,
    ) -> NovelBuilder:
        self._data.update(id=id, title=title, description=description, author=author)
        if cover is not None:
            self._data["cover"] = cover
        return self

    def add_scene(self, scene: Scene | Mapping[str, Any]) -> NovelBuilder:
        """Queue a scene. Mappings are validated together with the novel."""
        if isinstance(scene, Scene):
            self._data["scenes"].append(scene.model_dump(by_alias=True, exclude_none=True))
        else:
            self._data["scenes"].append(copy.deepcopy(dict(scene)))
        return self

    def add_tag(self, tag: str) -> NovelBuilder:
        self._data["tags"].append(tag)
        return self

    def set_variable(self, name: str, default: Any) -> NovelBuilder:
        self._data["variables"][name] = copy.deepcopy(default)
        return self

    def add_route(
        self, id: str, name: str, start_scene_id: str, end_scene_id: str
    ) -> NovelBuilder:
        route = Route(
            id=id, name=name,
            start_scene_id=start_scene_id, end_scene_id=end_scene_id,
        )
        self._data.setdefault("routes", []).append(route.model_dump(by_alias=True))
        return self

    @property
    def scene_count(self) -> int:
        return len(self._data["scenes"])

    def build(
        self,
        *,
        check_references: bool = False,
        allow_duplicate_ids: bool = False,
    ) -> Novel:
        """Validate everything added so far and return the finished Novel.

        Raises ``pydantic.ValidationError`` when metadata is missing or any
        scene is malformed.
        """
        return Novel.model_validate(
            copy.deepcopy(self._data),
            context={
                "check_references": check_references,
                "allow_duplicate_ids": allow_duplicate_ids,
            },
        )
