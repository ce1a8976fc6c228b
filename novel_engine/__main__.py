"""novel-engine command line.

    python -m novel_engine validate story.json [--check-references] [--allow-duplicate-ids]
    python -m novel_engine play story.json
    python -m novel_engine generate "a ghost story in a lighthouse" --outline "the storm" -o out.json
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from novel_engine.conditions import validate_condition
from novel_engine.config import Settings, load_settings
from novel_engine.engine import NovelEngine
from novel_engine.generation import LLMSceneGenerator, generate_from_prompt
from novel_engine.llm import LLMError
from novel_engine.models import Novel, Scene, load_novel


def _load(path: Path, settings: Settings, args: argparse.Namespace) -> Novel:
    return load_novel(
        path.read_bytes(),
        check_references=args.check_references or settings.check_references,
        allow_duplicate_ids=args.allow_duplicate_ids or settings.allow_duplicate_ids,
    )


def _print_validation_error(e: ValidationError) -> None:
    print(f"Invalid novel: {e.error_count()} error(s)", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "<root>"
        print(f"  {loc}: {err['msg']}", file=sys.stderr)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    try:
        novel = _load(args.file, settings, args)
    except ValidationError as e:
        _print_validation_error(e)
        return 1
    except OSError as e:
        print(f"error: cannot read {args.file}: {e.strerror or e}", file=sys.stderr)
        return 1

    choices = sum(len(s.choices or []) for s in novel.scenes)
    print(f"{novel.title} ({novel.id}): {len(novel.scenes)} scene(s), {choices} choice(s)")

    for src, dst in novel.dangling_references():
        print(f"warning: {src} points at unknown scene {dst!r}")
    for scene in novel.scenes:
        for i, choice in enumerate(scene.choices or []):
            if choice.condition:
                problem = validate_condition(choice.condition)
                if problem:
                    print(f"warning: {scene.id} choice {i + 1} condition: {problem}")
    return 0


# ---------------------------------------------------------------------------
# play
# ---------------------------------------------------------------------------

def _show_scene(scene: Scene, write: Callable[[str], None]) -> None:
    write("")
    if scene.dialogue.speaker:
        write(f"{scene.dialogue.speaker}: {scene.dialogue.text}")
    else:
        write(scene.dialogue.text)


def play(
    engine: NovelEngine,
    read: Callable[[str], str] | None = None,
    write: Callable[[str], None] | None = None,
) -> None:
    """Text-mode playthrough. Numbers pick choices, Enter continues, q quits.

    Reads with input() and writes with print() unless told otherwise.
    """
    read = read or input
    write = write or print
    scene = engine.get_current_scene()
    if scene is None:
        write("This novel has no scenes.")
        return

    while True:
        _show_scene(scene, write)
        if engine.is_finished():
            write("[The End]")
            return

        if scene.choices:
            for i, choice in engine.available_choices():
                write(f"  {i + 1}. {choice.text}")
            prompt = "> "
        else:
            prompt = "[Enter] "

        try:
            answer = read(prompt).strip()
        except EOFError:
            return
        if answer.lower() == "q":
            return

        if scene.choices:
            target = engine.make_choice(int(answer) - 1) if answer.isdigit() else None
            if target is None:
                write("That choice is not available.")
                continue
        else:
            target = engine.next_scene()
            if target is None:
                write(f"The story cannot continue past {scene.id!r}.")
                return
        scene = target


def cmd_play(args: argparse.Namespace, settings: Settings) -> int:
    try:
        novel = _load(args.file, settings, args)
    except ValidationError as e:
        _print_validation_error(e)
        return 1
    except OSError as e:
        print(f"error: cannot read {args.file}: {e.strerror or e}", file=sys.stderr)
        return 1
    play(NovelEngine(novel))
    return 0


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------

def cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    try:
        generator = LLMSceneGenerator(settings.create_llm())
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    character = {"name": args.character} if args.character else None
    try:
        novel = asyncio.run(generate_from_prompt(
            args.prompt, generator, character, outline=args.outline,
        ))
    except (LLMError, ValueError) as e:
        print(f"error: generation failed: {e}", file=sys.stderr)
        return 1

    text = novel.to_json()
    if args.output:
        args.output.write_text(text)
        print(f"Wrote {novel.id} to {args.output}")
    else:
        print(text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="novel-engine", description="Visual novel engine tools")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("validate", "Validate a novel JSON file"),
                            ("play", "Play a novel in the terminal")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("file", type=Path, help="Novel JSON file")
        p.add_argument("--check-references", action="store_true",
                       help="Reject choices pointing at unknown scenes")
        p.add_argument("--allow-duplicate-ids", action="store_true",
                       help="Accept repeated scene ids (first one wins)")

    p = sub.add_parser("generate", help="Generate a novel with the configured LLM")
    p.add_argument("prompt", help="What the novel is about")
    p.add_argument("--outline", action="append", default=[],
                   help="Describe one more scene (repeatable)")
    p.add_argument("--character", default=None, help="Name of the featured character")
    p.add_argument("-o", "--output", type=Path, default=None,
                   help="Write the novel here instead of stdout")
    return parser


_COMMANDS = {"validate": cmd_validate, "play": cmd_play, "generate": cmd_generate}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return _COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
