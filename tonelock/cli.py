"""Command-line interface for tonelock.

Provides commands for:
- chords: Track chords through an audio file and show the timeline
- tune: Run the tuner over an audio file and show the stable notes
- info: Show audio file information
"""

import logging
import typer
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any, List
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

app = typer.Typer(
    name="tonelock",
    help="Stable chord and pitch tracking for audio",
    rich_markup_mode="markdown",
)
console = Console()


@dataclass
class NoteSegment:
    """A run of frames showing the same stable note."""

    label: str
    start_ms: float
    end_ms: float
    cents_total: float = 0.0
    tuned_frames: int = 0
    frames: int = 0

    @property
    def mean_cents(self) -> float:
        return self.cents_total / self.frames if self.frames else 0.0

    @property
    def tuned_ratio(self) -> float:
        return self.tuned_frames / self.frames if self.frames else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "note": self.label,
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "mean_cents": round(self.mean_cents, 1),
            "tuned_ratio": round(self.tuned_ratio, 3),
            "frames": self.frames,
        }


def _setup_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _load_engine_config(config_path: Optional[Path]):
    from .config import load_config

    try:
        return load_config(str(config_path) if config_path else None)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _load_audio(input_file: Path, sr: int, start: float = 0.0, duration: Optional[float] = None):
    from .input import AudioLoader

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    loader = AudioLoader(target_sr=sr)
    try:
        audio, sr = loader.load(str(input_file), offset=start, duration=duration)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    return loader, audio, sr


def _progress(disable: bool) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        disable=disable,
    )


@app.command()
def chords(
    input_file: Path = typer.Argument(..., help="Input audio file (WAV, MP3, FLAC, OGG)"),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Write the chord timeline as JSON"
    ),
    start: float = typer.Option(0.0, "--start", help="Start time in seconds"),
    duration: Optional[float] = typer.Option(
        None, "--duration", help="Analyze at most this many seconds"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "-c", "--config", help="JSON engine configuration"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Verbose output with debug logging"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
):
    """Track chords through an audio file.

    **Examples:**

        tonelock chords song.wav

        tonelock chords song.mp3 -o timeline.json --json

        tonelock chords song.wav --start 30 --duration 10
    """
    from .pipeline import ChordTracker

    _setup_logging(verbose)
    config = _load_engine_config(config_path)
    loader, audio, sr = _load_audio(input_file, config.frontend.sr, start, duration)
    length = loader.get_duration(audio, sr)

    if not json_output:
        console.print(f"[blue]Loaded audio:[/blue] {input_file} ({length:.2f}s)")

    tracker = ChordTracker(config)
    frames = 0
    silent_frames = 0
    onsets = 0
    with _progress(disable=json_output) as progress:
        progress.add_task("Tracking chords...", total=None)
        for frame in tracker.track(audio, sr):
            frames += 1
            silent_frames += frame.is_silent
            onsets += frame.is_onset

    timeline = tracker.timeline

    if output is not None:
        timeline.export(str(output))
        if not json_output:
            console.print(f"[blue]Timeline written to:[/blue] {output}")

    if json_output:
        console.print_json(data={
            "input": str(input_file),
            "duration": length,
            "frames": frames,
            "silent_frames": silent_frames,
            "onsets": onsets,
            "final_chord": tracker.current_symbol,
            "timeline": timeline.to_dict(),
        })
        return

    console.print(f"  Frames: {frames} ({silent_frames} silent, {onsets} onsets)")
    if len(timeline):
        _show_timeline_table(timeline.entries)
    else:
        console.print("[yellow]No chords detected[/yellow]")
    console.print(f"[green]Final chord:[/green] {tracker.current_symbol}")

    if verbose and tracker.alternatives:
        alts = ", ".join(f"{a.symbol} ({a.confidence:.2f})" for a in tracker.alternatives)
        console.print(f"  Alternatives: {alts}")


@app.command()
def tune(
    input_file: Path = typer.Argument(..., help="Input audio file (WAV, MP3, FLAC, OGG)"),
    estimator: str = typer.Option(
        "yin", "-e", "--estimator", help="Pitch estimator: yin/autocorrelation"
    ),
    start: float = typer.Option(0.0, "--start", help="Start time in seconds"),
    duration: Optional[float] = typer.Option(
        None, "--duration", help="Analyze at most this many seconds"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "-c", "--config", help="JSON engine configuration"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Verbose output with debug logging"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
):
    """Run the tuner over an audio file and list the stable notes.

    **Examples:**

        tonelock tune low_e.wav

        tonelock tune voice.wav -e autocorrelation --json
    """
    from .pipeline import PitchTracker

    _setup_logging(verbose)
    config = _load_engine_config(config_path)

    estimator = estimator.lower()
    if estimator not in PitchTracker.ESTIMATORS:
        console.print(
            f"[red]Error: Unknown estimator '{estimator}'. "
            f"Use one of: {', '.join(PitchTracker.ESTIMATORS)}[/red]"
        )
        raise typer.Exit(1)

    loader, audio, sr = _load_audio(input_file, config.frontend.sr, start, duration)
    length = loader.get_duration(audio, sr)

    if not json_output:
        console.print(f"[blue]Loaded audio:[/blue] {input_file} ({length:.2f}s)")

    tracker = PitchTracker(config, estimator=estimator)
    segments: List[NoteSegment] = []
    with _progress(disable=json_output) as progress:
        progress.add_task("Tracking pitch...", total=None)
        for frame in tracker.track(audio, sr):
            _add_to_segments(segments, frame)

    if json_output:
        console.print_json(data={
            "input": str(input_file),
            "duration": length,
            "estimator": estimator,
            "notes": [segment.to_dict() for segment in segments],
        })
        return

    if segments:
        _show_segments_table(segments)
    else:
        console.print("[yellow]No stable pitch detected[/yellow]")


def _add_to_segments(segments: List[NoteSegment], frame) -> None:
    """Extend or open a note segment with one live (non-ghost) frame."""
    stable = frame.stable
    if stable.is_idle or stable.is_ghost:
        return

    if not segments or segments[-1].label != stable.label:
        segments.append(NoteSegment(
            label=stable.label,
            start_ms=frame.timestamp_ms,
            end_ms=frame.timestamp_ms,
        ))

    segment = segments[-1]
    segment.end_ms = frame.timestamp_ms
    segment.frames += 1
    segment.cents_total += stable.cents
    segment.tuned_frames += stable.is_tuned


@app.command()
def info(
    input_file: Path = typer.Argument(..., help="Input audio file"),
    config_path: Optional[Path] = typer.Option(
        None, "-c", "--config", help="JSON engine configuration"
    ),
):
    """Show information about an audio file."""
    from .analysis import rms

    config = _load_engine_config(config_path)
    loader, audio, sr = _load_audio(input_file, config.frontend.sr)
    frontend = config.frontend

    console.print(f"\n[bold]Audio Info:[/bold] {input_file.name}")
    console.print(f"  Duration: {loader.get_duration(audio, sr):.2f} seconds")
    console.print(f"  Sample rate: {sr} Hz")
    console.print(f"  Samples: {len(audio):,}")
    console.print(
        f"  Analysis frames: {len(audio) // frontend.hop_length:,} "
        f"(hop {frontend.hop_length}, {frontend.hop_ms:.1f} ms)"
    )
    console.print(f"  RMS level: {rms(audio):.4f}")


def _show_timeline_table(entries):
    """Display chord timeline entries in a table."""
    table = Table(title="Chord Timeline")
    table.add_column("Chord", style="cyan")
    table.add_column("Time", style="yellow")
    table.add_column("Frames", style="green")
    table.add_column("Confidence", style="magenta")

    for entry in entries:
        table.add_row(
            entry.symbol,
            f"{entry.start_ms / 1000:.2f}-{entry.end_ms / 1000:.2f}s",
            str(entry.frames),
            f"{entry.confidence:.2f}",
        )

    console.print(table)


def _show_segments_table(segments: List[NoteSegment]):
    """Display stable note segments in a table."""
    table = Table(title="Stable Notes")
    table.add_column("Note", style="cyan")
    table.add_column("Time", style="yellow")
    table.add_column("Cents", style="green")
    table.add_column("In tune", style="magenta")

    for segment in segments:
        table.add_row(
            segment.label,
            f"{segment.start_ms / 1000:.2f}-{segment.end_ms / 1000:.2f}s",
            f"{segment.mean_cents:+.1f}",
            f"{segment.tuned_ratio:.0%}",
        )

    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
