"""gesture-library CLI - inspect and train a gesture store from the shell.

Usage:
    gesture-library entries    - List entries and their gesture counts
    gesture-library add        - Add gestures from a JSON trace file
    gesture-library remove     - Remove an entry
    gesture-library recognize  - Rank entries for a JSON trace
    gesture-library dump       - Export the store as JSON

Trace files hold either one gesture or a list of them:
    {"strokes": [[[x, y, t], ...], ...]}
    {"gestures": [{"strokes": ...}, ...]}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from gesture_library.config import LibraryConfig
from gesture_library.errors import GestureLibraryError
from gesture_library.features import OrientationStyle, SequenceType
from gesture_library.gesture import Gesture
from gesture_library.library import GestureLibrary

app = typer.Typer(
    name="gesture-library",
    help="Train and query a stroke gesture library.",
    add_completion=False,
)


def _open_library(
    store: Optional[str],
    config: Optional[str],
    sequence_type: str,
    orientation_style: str,
) -> GestureLibrary:
    if config:
        library = GestureLibrary.from_config(LibraryConfig.from_yaml(config))
    elif store:
        try:
            library = GestureLibrary(
                store,
                sequence_type=SequenceType(sequence_type),
                orientation_style=OrientationStyle(orientation_style),
            )
        except ValueError as e:
            typer.echo(f"❌ {e}", err=True)
            raise typer.Exit(1)
    else:
        typer.echo("❌ Give a store path or --config", err=True)
        raise typer.Exit(1)

    if library.path.exists() and not library.load():
        typer.echo(f"❌ Could not read gesture store: {library.path}", err=True)
        raise typer.Exit(1)
    return library


def _read_traces(path: str) -> list[Gesture]:
    trace_path = Path(path)
    if not trace_path.exists():
        typer.echo(f"❌ Trace file not found: {path}", err=True)
        raise typer.Exit(1)

    try:
        with open(trace_path) as f:
            data = json.load(f)
        entries = data.get("gestures", [data]) if isinstance(data, dict) else data
        return [Gesture.from_dict(entry) for entry in entries]
    except (GestureLibraryError, ValueError, TypeError, AttributeError) as e:
        typer.echo(f"❌ Malformed trace file {path}: {e}", err=True)
        raise typer.Exit(1)


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def entries(
    store: Optional[str] = typer.Argument(None, help="Path to the gesture store"),
    config: Optional[str] = typer.Option(None, help="Path to library YAML config"),
):
    """List entries and the number of gestures stored for each."""
    library = _open_library(store, config, "invariant", "sensitive")
    names = sorted(library.get_gesture_entries())
    if not names:
        typer.echo("📭 Library is empty")
        return

    for name in names:
        typer.echo(f"   {name:25s} {len(library.get_gestures(name))} gesture(s)")


@app.command()
def add(
    label: str = typer.Argument(..., help="Entry name to train under"),
    trace: str = typer.Argument(..., help="JSON trace file"),
    store: Optional[str] = typer.Option(None, help="Path to the gesture store"),
    config: Optional[str] = typer.Option(None, help="Path to library YAML config"),
    sequence_type: str = typer.Option("sensitive", help="invariant or sensitive"),
    orientation_style: str = typer.Option("sensitive", help="invariant or sensitive"),
):
    """Add the gestures in a trace file under LABEL and save."""
    library = _open_library(store, config, sequence_type, orientation_style)
    gestures = _read_traces(trace)

    try:
        for gesture in gestures:
            library.add_gesture(label, gesture)
    except GestureLibraryError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    if not library.save():
        typer.echo(f"❌ Could not save gesture store: {library.path}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✅ Added {len(gestures)} gesture(s) to '{label}'")


@app.command()
def remove(
    label: str = typer.Argument(..., help="Entry name to remove"),
    store: Optional[str] = typer.Option(None, help="Path to the gesture store"),
    config: Optional[str] = typer.Option(None, help="Path to library YAML config"),
    sequence_type: str = typer.Option("sensitive", help="invariant or sensitive"),
    orientation_style: str = typer.Option("sensitive", help="invariant or sensitive"),
):
    """Remove an entry and all of its gestures."""
    library = _open_library(store, config, sequence_type, orientation_style)
    if label not in library:
        typer.echo(f"❌ No entry named '{label}'", err=True)
        raise typer.Exit(1)

    library.remove_entry(label)
    if not library.save():
        typer.echo(f"❌ Could not save gesture store: {library.path}", err=True)
        raise typer.Exit(1)
    typer.echo(f"🗑  Removed '{label}'")


@app.command()
def recognize(
    trace: str = typer.Argument(..., help="JSON trace file"),
    store: Optional[str] = typer.Option(None, help="Path to the gesture store"),
    config: Optional[str] = typer.Option(None, help="Path to library YAML config"),
    sequence_type: str = typer.Option("sensitive", help="invariant or sensitive"),
    orientation_style: str = typer.Option("sensitive", help="invariant or sensitive"),
    top: int = typer.Option(5, help="Number of predictions to show"),
):
    """Rank library entries for each gesture in a trace file."""
    library = _open_library(store, config, sequence_type, orientation_style)

    for i, gesture in enumerate(_read_traces(trace)):
        try:
            predictions = library.recognize(gesture)
        except GestureLibraryError as e:
            typer.echo(f"❌ {e}", err=True)
            raise typer.Exit(1)

        typer.echo(f"🤚 Gesture {i}:")
        if not predictions:
            typer.echo("   (no predictions)")
        for p in predictions[:top]:
            typer.echo(f"   → {p.name}: {p.score:.3f}")


@app.command()
def dump(
    store: Optional[str] = typer.Argument(None, help="Path to the gesture store"),
    config: Optional[str] = typer.Option(None, help="Path to library YAML config"),
    output: Optional[str] = typer.Option(None, "-o", help="Output JSON path (default: stdout)"),
):
    """Export every entry and gesture as JSON."""
    library = _open_library(store, config, "invariant", "sensitive")
    data = {
        "entries": {
            name: [g.to_dict() for g in library.get_gestures(name)]
            for name in sorted(library.get_gesture_entries())
        }
    }

    if output:
        with open(output, "w") as f:
            json.dump(data, f, indent=2)
        typer.echo(f"💾 Saved to: {output}")
    else:
        typer.echo(json.dumps(data, indent=2))


def main():
    app()


if __name__ == "__main__":
    main()
