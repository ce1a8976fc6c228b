import copy
import os

import pytest

from novel_engine.models import Novel, load_novel

SAMPLE_NOVEL = {
    "id": "lighthouse",
    "title": "The Lighthouse",
    "description": "A keeper, a storm and a locked door.",
    "author": "Test Author",
    "tags": ["mystery", "short"],
    "variables": {"gold": 10, "has_key": False, "flags": {"met_keeper": False}},
    "scenes": [
        {
            "id": "shore",
            "background": "bg/shore.png",
            "characters": [
                {"id": "keeper", "name": "Keeper", "position": "left"},
                {"id": "gull", "name": "Gull", "position": "left", "expression": "smug"},
            ],
            "dialogue": {"speaker": "Keeper", "text": "Storm's coming."},
            "choices": [
                {"text": "Climb the tower", "nextSceneId": "tower", "condition": "has_key"},
                {"text": "Pay the keeper", "nextSceneId": "cottage", "condition": "gold >= 10"},
                {"text": "Walk away", "nextSceneId": "road"},
            ],
            "nextSceneId": "road",
        },
        {
            "id": "cottage",
            "dialogue": {"speaker": "Keeper", "text": "Here, take the key."},
            "nextSceneId": "shore",
            "effects": [{"type": "fade", "duration": 0.5}],
        },
        {"id": "tower", "dialogue": {"text": "The lamp is dark."}},
        {"id": "road", "dialogue": {"text": ""}, "nextSceneId": "nowhere"},
    ],
    "routes": [
        {"id": "good", "name": "Good ending", "startSceneId": "shore", "endSceneId": "tower"},
    ],
}


@pytest.fixture
def novel_payload() -> dict:
    """A fresh, mutable copy of the sample novel document."""
    return copy.deepcopy(SAMPLE_NOVEL)


@pytest.fixture
def novel(novel_payload: dict) -> Novel:
    return load_novel(novel_payload)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Strip NOVEL_ENGINE_* variables and run each test from an empty directory."""
    for name in list(os.environ):
        if name.startswith("NOVEL_ENGINE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
