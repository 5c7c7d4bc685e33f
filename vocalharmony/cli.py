"""Command-line interface for Vocal Harmony.

Provides commands for:
- info: Show audio file information
- notes: Segment a vocal take into note blocks (optionally export MIDI)
- shift: Voicing-gated pitch shift of a file
- mix: Render audio files or a project archive to a mixdown
- stems: Export every track of a project archive
- pack: Bundle audio files into a project archive
- lyrics: Show a timed lyric/chord sidecar
"""

import typer
from pathlib import Path
from typing import List, Optional
from rich.console import Console
from rich.table import Table

from .core import StudioError

app = typer.Typer(
    name="vocal-harmony",
    help="Multitrack vocal recording and pitch-correction studio engine",
    rich_markup_mode="markdown",
)
console = Console()


def _load_config(config_file: Optional[Path]):
    from .config import StudioConfig

    if config_file is None:
        return StudioConfig()
    if not config_file.exists():
        console.print(f"[red]Error: Config file not found: {config_file}[/red]")
        raise typer.Exit(1)
    return StudioConfig.load(config_file)


def _require_files(paths: List[Path]) -> None:
    for path in paths:
        if not path.exists():
            console.print(f"[red]Error: File not found: {path}[/red]")
            raise typer.Exit(1)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
):
    """Vocal Harmony studio engine."""
    from .logging_setup import configure_logging

    configure_logging("INFO" if verbose else "WARNING")


@app.command()
def info(
    input_file: Path = typer.Argument(..., help="Input audio file"),
):
    """Show information about an audio file."""
    from .input import AudioLoader
    from .analysis import PitchDetector

    _require_files([input_file])

    loader = AudioLoader()
    try:
        buffer = loader.load(input_file)
    except StudioError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Audio Info:[/bold] {input_file.name}")
    console.print(f"  Duration: {loader.get_duration(buffer):.2f} seconds")
    console.print(f"  Sample rate: {buffer.sample_rate} Hz")
    console.print(f"  Channels: {buffer.channels}")
    console.print(f"  Samples: {buffer.frames:,}")

    mask = PitchDetector().voicing_mask(buffer.mono(), buffer.sample_rate)
    if len(mask):
        console.print(f"  Voiced: {100.0 * mask.mean():.0f}% of analysis windows")


@app.command()
def notes(
    input_file: Path = typer.Argument(..., help="Vocal take (WAV, FLAC, OGG, MP3)"),
    midi: Optional[Path] = typer.Option(
        None, "--midi", "-m", help="Also write the note blocks to this MIDI file"
    ),
    tempo: float = typer.Option(
        120.0, "-t", "--tempo", help="Tempo written to the MIDI file (BPM)"
    ),
):
    """Segment a recording into note blocks.

    **Examples:**

        vocal-harmony notes take.wav

        vocal-harmony notes take.wav --midi take.mid
    """
    from .input import AudioLoader
    from .analysis import NoteSegmenter
    from .output import MIDIExporter

    _require_files([input_file])

    try:
        buffer = AudioLoader().load(input_file)
    except StudioError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[blue]Segmenting:[/blue] {input_file}")
    blocks = NoteSegmenter().analyze(buffer)
    if not blocks:
        console.print("[yellow]No voiced notes found[/yellow]")
        return

    _show_blocks_table(blocks)

    if midi is not None:
        MIDIExporter(tempo=tempo).export(blocks, str(midi))
        console.print(f"[green]MIDI saved:[/green] {midi}")


@app.command()
def shift(
    input_file: Path = typer.Argument(..., help="Input audio file"),
    semitones: int = typer.Option(..., "-s", "--semitones", help="Shift in semitones (-12..12)"),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Output file (default: <input>_shifted.wav)"
    ),
    config_file: Optional[Path] = typer.Option(None, "--config", help="JSON engine config"),
):
    """Shift the voiced parts of a recording by whole semitones."""
    from .input import AudioLoader
    from .processing import PitchShiftProcessor
    from .output import get_codec

    _require_files([input_file])
    cfg = _load_config(config_file)

    if output is None:
        output = input_file.with_name(f"{input_file.stem}_shifted.wav")

    try:
        codec = get_codec(output.suffix.lstrip(".") or cfg.export_format)
        buffer = AudioLoader().load(input_file)
        processor = PitchShiftProcessor(
            hop=cfg.voicing_window,
            min_level=cfg.voicing_level,
            min_clarity=cfg.voicing_clarity,
            transition_ms=cfg.voicing_transition_ms,
        )
        console.print(f"[blue]Shifting by {semitones:+d} semitones...[/blue]")
        shifted = processor.shift(buffer, semitones)
        output.write_bytes(codec.encode(shifted))
    except (StudioError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Saved:[/green] {output}")


@app.command()
def mix(
    inputs: List[Path] = typer.Argument(..., help="Audio files and/or a project archive (.zip)"),
    output: Path = typer.Option(Path("mixdown.wav"), "-o", "--output", help="Output file"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="JSON engine config"),
):
    """Render a session to a stereo mixdown.

    The format follows the output extension (wav, flac, ogg, mp3).
    """
    from .engine.session import open_session
    from .output.mixdown import peak_level
    from .output import get_codec

    _require_files(inputs)
    cfg = _load_config(config_file)

    try:
        codec = get_codec(output.suffix.lstrip(".") or cfg.export_format)
        studio = open_session(inputs, cfg)
        _show_tracks_table(studio)
        console.print(f"[blue]Rendering {studio.max_duration:.2f}s mixdown...[/blue]")
        mixdown = studio.render_mixdown()
        output.write_bytes(codec.encode(mixdown))
    except StudioError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"  Peak level: {peak_level(mixdown):.3f}")
    console.print(f"[green]Mixdown saved:[/green] {output}")


@app.command()
def stems(
    archive: Path = typer.Argument(..., help="Project archive (.zip)"),
    output_dir: Path = typer.Option(Path("stems"), "-o", "--output-dir", help="Output directory"),
    format: str = typer.Option("wav", "-f", "--format", help="wav, flac, ogg or mp3"),
):
    """Export each track of a project archive as its own file."""
    from .engine.session import open_session

    _require_files([archive])

    try:
        studio = open_session([archive])
        files = studio.export_stems(format)
    except StudioError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    output_dir.mkdir(parents=True, exist_ok=True)
    for name, data in files.items():
        (output_dir / name).write_bytes(data)
        console.print(f"  [green]{name}[/green]")
    console.print(f"[green]{len(files)} stems saved to[/green] {output_dir}")


@app.command()
def pack(
    inputs: List[Path] = typer.Argument(..., help="Audio files, one track each"),
    output: Path = typer.Option(Path("project.zip"), "-o", "--output", help="Archive path"),
    title: str = typer.Option(..., "--title", help="Project title"),
    artist: str = typer.Option("Unknown Artist", "--artist", help="Artist name"),
    genre: str = typer.Option("", "--genre", help="Genre"),
    cover: Optional[Path] = typer.Option(None, "--cover", help="Cover image"),
):
    """Bundle audio files into a project archive."""
    from .engine.session import open_session

    _require_files(inputs + ([cover] if cover else []))

    try:
        studio = open_session(inputs)
        cover_blob = (cover.suffix.lstrip("."), cover.read_bytes()) if cover else None
        data = studio.save_project(title, artist=artist, genre=genre, cover=cover_blob)
    except StudioError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    output.write_bytes(data)
    _show_tracks_table(studio)
    console.print(f"[green]Project saved:[/green] {output}")


@app.command()
def lyrics(
    input_file: Path = typer.Argument(..., help="LRC sidecar file"),
):
    """Show the timed lines of a lyric or chord sidecar."""
    from .input import load_lrc

    _require_files([input_file])

    lines = load_lrc(input_file)
    table = Table(title=f"Lyrics: {input_file.name}")
    table.add_column("Time", style="green")
    table.add_column("Text", style="cyan")
    for line in lines:
        minutes, seconds = divmod(line.time, 60)
        table.add_row(f"{int(minutes):02d}:{seconds:05.2f}", line.text)
    console.print(table)


def _show_blocks_table(blocks):
    """Display note blocks in a table."""
    table = Table(title="Note Blocks")
    table.add_column("Block", style="blue")
    table.add_column("Pitch", style="cyan")
    table.add_column("Start (s)", style="green")
    table.add_column("Duration (s)", style="yellow")
    table.add_column("Frequency", style="magenta")

    for block in blocks:
        table.add_row(
            block.id,
            block.pitch_name,
            f"{block.start:.3f}",
            f"{block.duration:.3f}",
            f"{block.frequency:.1f} Hz",
        )

    console.print(table)


def _show_tracks_table(studio):
    """Display the session's tracks in a table."""
    table = Table(title="Tracks")
    table.add_column("Id", style="blue")
    table.add_column("Name", style="cyan")
    table.add_column("Duration", style="green")
    table.add_column("Volume", style="yellow")
    table.add_column("Pan", style="yellow")
    table.add_column("Shift", style="magenta")
    table.add_column("State", style="red")

    for track in studio.tracks:
        if track.is_master:
            continue
        flags = [name for name, on in (("mute", track.mute), ("solo", track.solo)) if on]
        table.add_row(
            str(track.id),
            track.name,
            f"{track.duration:.2f}s" if track.has_file else "-",
            f"{track.volume:.2f}",
            f"{track.pan:.2f}",
            f"{track.pitch_shift:+d}",
            ", ".join(flags),
        )

    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
