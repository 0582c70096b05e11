#!/usr/bin/env python3
"""
refclean - Command Line Interface

Batch preprocessing of a directory, plus single-file commands for the
iterative reference and the amplitude segment detector.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

import mne
from rich.console import Console
from rich.table import Table

from refclean import __version__
from refclean.core.pipeline import Pipeline
from refclean.functions.artifacts import annotate_amplitude_segments
from refclean.functions.preprocessing import rereference_iteratively
from refclean.types import InvalidConfig
from refclean.utils.logging import configure_logger, message


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for refclean."""
    parser = argparse.ArgumentParser(
        prog="refclean",
        description="Robust average referencing and amplitude based cleaning of EEG",
    )
    parser.add_argument("--version", action="version", version=f"refclean {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process_parser = subparsers.add_parser(
        "process", help="Preprocess every matching file of a directory"
    )
    process_parser.add_argument("input_dir", type=Path, help="Directory with EEG files")
    process_parser.add_argument(
        "--output", "-o", type=Path, required=True, help="Output directory"
    )
    process_parser.add_argument("--config", "-c", type=Path, help="YAML configuration file")
    process_parser.add_argument(
        "--pattern", default="*.set", help="Glob pattern of the input files (default: *.set)"
    )
    process_parser.add_argument(
        "--recursive", "-r", action="store_true", help="Search subdirectories"
    )
    process_parser.add_argument(
        "--verbose", "-v", default=None, help="Logging level (debug, info, warning, ...)"
    )

    reref_parser = subparsers.add_parser(
        "reref", help="Find the channels left out of a robust average reference"
    )
    reref_parser.add_argument("file", type=Path, help="EEG file")
    reref_parser.add_argument("--max-iterations", type=int, default=40)
    reref_parser.add_argument("--max-sd", type=float, default=75.0, help="Upper SD limit (µV)")
    reref_parser.add_argument("--min-sd", type=float, default=1.0, help="Lower SD limit (µV)")
    reref_parser.add_argument("--hp", type=float, default=1.0, help="Temporary high-pass (Hz)")
    reref_parser.add_argument("--lp", type=float, default=100.0, help="Temporary low-pass (Hz)")

    segments_parser = subparsers.add_parser(
        "segments", help="Detect bad segments from windowed amplitude statistics"
    )
    segments_parser.add_argument("file", type=Path, help="EEG file")
    segments_parser.add_argument(
        "--buffer", type=int, required=True, help="Windows added on each side of a bad window"
    )
    segments_parser.add_argument("--window", type=float, default=10.0, help="Window length (s)")
    segments_parser.add_argument("--stat", choices=["sd", "rms"], default="sd")
    segments_parser.add_argument("--threshold", type=float, default=None)
    segments_parser.add_argument("--zscore", action="store_true", help="Z-score channels first")
    segments_parser.add_argument("--hp", type=float, default=0.0, help="High-pass (Hz)")
    segments_parser.add_argument("--lp", type=float, default=0.0, help="Low-pass (Hz)")
    segments_parser.add_argument(
        "--segment-fraction",
        type=float,
        default=0.25,
        help="Fraction of bad channels that rejects a window",
    )
    segments_parser.add_argument(
        "--channel-bad-fraction",
        type=float,
        default=0.05,
        help="Fraction of bad windows that marks a channel bad",
    )

    return parser


def _read_raw(path: Path) -> mne.io.BaseRaw:
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return mne.io.read_raw(path, preload=True, verbose=False)


def cmd_process(args) -> int:
    """Execute the process command."""
    pipeline = Pipeline(output_dir=args.output, config_file=args.config, verbose=args.verbose)
    recorder = pipeline.process_directory(
        args.input_dir, pattern=args.pattern, recursive=args.recursive
    )

    console = Console()
    table = Table(title=f"refclean: {len(recorder)} file(s)")
    for column in ("File", "Status", "Bad channels", "Bad segments", "Bad seconds"):
        table.add_column(column)
    for record in recorder.records:
        table.add_row(
            record.setname,
            record.status,
            ", ".join(record.bad_channels) or "-",
            str(record.bad_segments),
            f"{record.bad_seconds:.1f}",
        )
    console.print(table)
    return 1 if any(r.status == "failed" for r in recorder.records) else 0


def cmd_reref(args) -> int:
    """Execute the reref command."""
    raw = _read_raw(args.file)
    _, bad_channels, result = rereference_iteratively(
        raw,
        max_iterations=args.max_iterations,
        max_sd=args.max_sd,
        min_sd=args.min_sd,
        hp_filter=args.hp,
        lp_filter=args.lp,
        verbose=False,
    )
    console = Console()
    console.print(
        f"[bold]{args.file.name}[/bold]: {len(bad_channels)} channel(s) excluded "
        f"after {result.iterations_run} iteration(s)"
        f"{'' if result.converged else ' (iteration limit reached)'}"
    )
    if bad_channels:
        console.print(", ".join(bad_channels))
    return 0


def cmd_segments(args) -> int:
    """Execute the segments command."""
    raw = _read_raw(args.file)
    config = {
        "reject_buffer_windows": args.buffer,
        "window_seconds": args.window,
        "statistic": args.stat,
        "threshold": args.threshold,
        "use_zscore": args.zscore,
        "hp_filter": args.hp,
        "lp_filter": args.lp,
        "segment_fraction": args.segment_fraction,
        "channel_bad_fraction": args.channel_bad_fraction,
    }
    _, result = annotate_amplitude_segments(raw, config)
    eeg_names = [raw.ch_names[i] for i in mne.pick_types(raw.info, eeg=True, exclude=[])]

    console = Console()
    table = Table(title=f"Bad segments in {args.file.name}")
    table.add_column("#", justify="right")
    table.add_column("Start (s)", justify="right")
    table.add_column("Stop (s)", justify="right")
    table.add_column("Duration (s)", justify="right")
    for idx, segment in enumerate(result.bad_segments, start=1):
        table.add_row(
            str(idx),
            f"{segment.start_seconds:.2f}",
            f"{segment.stop_seconds:.2f}",
            f"{segment.duration:.2f}",
        )
    console.print(table)
    console.print(
        f"Total: {result.total_bad_seconds:.0f} s ({result.bad_percentage:.1f} %) | "
        f"Bad channels: {', '.join(eeg_names[i] for i in result.bad_channels) or 'none'}"
    )
    return 0


COMMANDS = {
    "process": cmd_process,
    "reref": cmd_reref,
    "segments": cmd_segments,
}


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the refclean CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command != "process":
        configure_logger("warning")

    try:
        return COMMANDS[args.command](args)
    except (InvalidConfig, FileNotFoundError, NotADirectoryError) as e:
        message("error", str(e))
        return 2
    except Exception as e:  # pylint: disable=broad-except
        message("error", f"{args.command} failed: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
