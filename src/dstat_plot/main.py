#!/usr/bin/env python3
"""
dstat plot - line charts from dstat CSV logs, split into pure functional units.

This module exposes the pipeline stages:
- read_datasets()             extract, transform and fold many files into one DatasetContainer
- transform_series()          inversion and grouped averaging for one series
- build_plot_title()          title derived from the first file and the active transforms
- generate_filename()         output path for the rendered chart
- render_dataset_container()  matplotlib backend

Each function takes explicit inputs and returns explicit outputs. Errors are raised,
never turned into process exits; only main() decides the exit status.
"""

import logging
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# Ensure a non-interactive Matplotlib backend is selected early to prevent GUI-backend
# selection/hangs in headless environments. We set the backend here before importing
# pyplot so that any later imports of matplotlib.pyplot will pick up the enforced backend.
import matplotlib

matplotlib.use("Agg", force=True)
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

# Support both package and script execution modes
try:
    # When run as a package: python -m dstat_plot
    from .csv_processor import (
        ColumnNotFoundError,
        ColumnRef,
        CSVProcessingError,
        DstatCsvReader,
        FileMetadata,
        RawSeries,
        resolve_column,
    )
    from .smoothing import (
        InvalidTransformConfigError,
        SmoothingAlgorithm,
        apply_smoothing,
    )
    from .utils import discover_input_files, sanitize_filename_component
except ImportError:
    # When run directly: python src/dstat_plot/main.py
    from csv_processor import (
        ColumnNotFoundError,
        ColumnRef,
        CSVProcessingError,
        DstatCsvReader,
        FileMetadata,
        RawSeries,
        resolve_column,
    )
    from smoothing import InvalidTransformConfigError, SmoothingAlgorithm, apply_smoothing
    from utils import discover_input_files, sanitize_filename_component

logger = logging.getLogger(__name__)

# Axis maximum used when neither an explicit max nor an inversion pivot is given.
Y_DEFAULT: float = 105.0
# Pivot used by a bare -i/--invert.
DEFAULT_INVERSION_PIVOT: float = 100.0
# Head room above the axis maximum.
Y_HEADROOM: float = 1.05
# Line-break marker inside titles; the renderer turns it into a real newline.
TITLE_LINE_BREAK: str = "\\n"
X_LABEL: str = "Time in seconds"
FIGURE_SIZE: Tuple[float, float] = (16.0, 8.0)
FIGURE_DPI: int = 100


class NoDataError(ValueError):
    """Raised when no input files were found or no series were produced."""

    pass


class StageResult:
    """Container for transform stage results and diagnostics."""

    def __init__(self, label: Optional[str] = None) -> None:
        self.label: Optional[str] = label

        # Point counters
        self.original_points: int = 0
        self.output_points: int = 0

        # Diagnostics
        self.events: list[str] = []
        self.metrics: dict[str, int | float | str] = {}
        self.skipped_reason: Optional[str] = None

        # Timing
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None
        self.elapsed_ms: Optional[float] = None

    def start(self) -> None:
        import time

        self.started_at = time.perf_counter()

    def stop(self) -> None:
        import time

        self.finished_at = time.perf_counter()
        if self.started_at is not None:
            self.elapsed_ms = (self.finished_at - self.started_at) * 1000.0

    def add_event(self, message: str) -> None:
        self.events.append(message)
        logger.debug(f"{self.label}: {message}" if self.label else message)

    def add_metric(self, name: str, value: int | float | str) -> None:
        self.metrics[name] = value

    def set_skipped(self, reason: str) -> None:
        self.skipped_reason = reason

    def summarize(self) -> str:
        """Produce a concise summary string for diagnostics."""
        lbl = f"{self.label} " if self.label else ""
        parts = [f"{lbl}result: {self.original_points} → {self.output_points}"]
        if self.skipped_reason:
            parts.append(f"skipped={self.skipped_reason}")
        if self.elapsed_ms is not None:
            parts.append(f"elapsed_ms={self.elapsed_ms:.1f}")
        if self.metrics:
            parts.append(f"metrics={self.metrics}")
        if self.events:
            parts.append(f"events={self.events}")
        return " | ".join(parts)


@dataclass
class LoadParams:
    """
    Which files to read and which column to plot.

    Attributes:
        files: CSV files in processing order (the first one supplies the title metadata).
        column: Column selector, by (category, field) or by raw index.
        target_dir: Directory generated output names are placed in.
    """

    files: List[Path]
    column: Optional[ColumnRef]
    target_dir: Path = Path(".")


@dataclass(frozen=True)
class TransformParams:
    """
    Per-series transforms. Frozen: configuration only.

    inversion_pivot: when set, values become abs(value - pivot).
    group_size: when set, consecutive groups of this many samples are averaged.
    smoothing: renderer-side smoothing algorithm (also named in the title).
    """

    inversion_pivot: Optional[float] = None
    group_size: Optional[int] = None
    smoothing: Optional[SmoothingAlgorithm] = None

    def __post_init__(self) -> None:
        if self.group_size is not None and (
            isinstance(self.group_size, bool)
            or not isinstance(self.group_size, (int, np.integer))
            or self.group_size <= 0
        ):
            raise InvalidTransformConfigError(
                f"Group size must be a positive integer or None, got: {self.group_size}"
            )
        if self.smoothing is not None and not isinstance(
            self.smoothing, SmoothingAlgorithm
        ):
            # Accept names for convenience; frozen, so go through object.__setattr__
            object.__setattr__(self, "smoothing", SmoothingAlgorithm.parse(self.smoothing))


@dataclass
class PlotParams:
    """
    Rendering controls.

    y_max: explicit axis maximum; fixed for the whole run when given.
    title: explicit title, replaces the generated one verbatim.
    output: file or directory to write to; None places a generated name in the target dir.
    """

    y_max: Optional[float] = None
    title: Optional[str] = None
    show_legend: bool = True
    dry_run: bool = False
    output: Optional[Path] = None


@dataclass(frozen=True)
class PlotMetadata:
    title: str
    y_max: float
    autoscale: bool = False
    x_label: str = X_LABEL
    y_label: str = ""
    # Explicit titles are drawn verbatim, without line-break marker expansion
    explicit_title: bool = False


@dataclass(frozen=True)
class DatasetContainer:
    """Plot-ready data: one series per input file plus shared axis metadata."""

    series: Tuple[RawSeries, ...]
    metadata: PlotMetadata

    @property
    def title(self) -> str:
        return self.metadata.title

    @property
    def y_max(self) -> float:
        return self.metadata.y_max

    @property
    def autoscale(self) -> bool:
        return self.metadata.autoscale


# -------------------------
# Transform stages
# -------------------------
def invert_values(values: np.ndarray, pivot: float) -> np.ndarray:
    """Return abs(value - pivot) for every value; NaN stays NaN."""
    return np.abs(np.asarray(values, dtype=float) - float(pivot))


def average(data: np.ndarray, group_size: int) -> np.ndarray:
    """
    Average consecutive groups of `group_size` values.

    The final group may be smaller; it is averaged over the values it has, so the
    result has ceil(len(data) / group_size) entries.
    """
    if group_size <= 0:
        raise InvalidTransformConfigError(
            f"Group size must be a positive integer, got: {group_size}"
        )
    data = np.asarray(data, dtype=float)
    if data.size == 0:
        return data.copy()
    groups = np.arange(len(data)) // group_size
    return pd.Series(data).groupby(groups).mean().to_numpy(dtype=float)


def average_groups(series: RawSeries, group_size: int) -> RawSeries:
    """Decimate a series: timestamps and values are averaged independently per group."""
    return replace(
        series,
        timestamps=average(series.timestamps, group_size),
        values=average(series.values, group_size),
    )


def transform_series(
    series: RawSeries, params: TransformParams, verbose: bool = False
) -> RawSeries:
    """
    Apply inversion then grouped averaging. With no active stage the series is
    returned unchanged.
    """
    if params.inversion_pivot is not None:
        result = StageResult(label=f"invert[{series.source_label}]")
        result.start()
        result.original_points = len(series)
        series = replace(
            series, values=invert_values(series.values, params.inversion_pivot)
        )
        result.output_points = len(series)
        result.add_metric("pivot", float(params.inversion_pivot))
        result.stop()
        if verbose:
            logger.info(result.summarize())

    if params.group_size is not None:
        result = StageResult(label=f"average[{series.source_label}]")
        result.start()
        result.original_points = len(series)
        if params.group_size == 1:
            result.set_skipped("group size 1 is the identity")
            result.add_event("averaging skipped, group size is 1")
        else:
            tail = len(series) % params.group_size
            if tail:
                result.add_event(f"last group averages {tail} of {params.group_size} value(s)")
            series = average_groups(series, params.group_size)
            gaps = int(np.isnan(series.values).sum())
            if gaps:
                result.add_event(f"{gaps} averaged group(s) hold no numeric value")
        result.output_points = len(series)
        result.add_metric("group_size", int(params.group_size))
        result.stop()
        if verbose:
            logger.info(result.summarize())

    return series


@dataclass(frozen=True)
class AxisState:
    """
    Accumulator for the y axis across files.

    Without an explicit maximum the running max only grows. With an explicit
    maximum (fixed=True) the number never changes and `autoscale` is raised
    once any value exceeds it.
    """

    y_max: float
    autoscale: bool = False
    fixed: bool = False

    @classmethod
    def initial(
        cls, explicit_max: Optional[float] = None, inversion_pivot: Optional[float] = None
    ) -> "AxisState":
        if explicit_max is not None:
            return cls(y_max=float(explicit_max), fixed=True)
        if inversion_pivot is not None:
            return cls(y_max=float(inversion_pivot))
        return cls(y_max=Y_DEFAULT)

    def update(self, values: np.ndarray) -> "AxisState":
        values = np.asarray(values, dtype=float)
        finite = values[np.isfinite(values)]
        if finite.size == 0:
            return self
        local_max = float(finite.max())
        if self.fixed:
            return replace(self, autoscale=self.autoscale or local_max > self.y_max)
        return replace(self, y_max=max(self.y_max, local_max))


# -------------------------
# Title / container / filename
# -------------------------
def build_plot_title(
    prefix: str,
    params: TransformParams,
    metadata: Optional[FileMetadata] = None,
    explicit_title: Optional[str] = None,
) -> str:
    """
    Build the plot title from the first file's metadata and the active transforms.

    Example:
        >>> build_plot_title("cpu-sys", TransformParams())
        'cpu-sys over time'

    Lines are joined with TITLE_LINE_BREAK, not a newline character.
    """
    if explicit_title is not None:
        return explicit_title

    head = f"{prefix} over time"
    if params.smoothing is not None:
        head += f" (smoothing: {params.smoothing.value})"
    lines = [head]
    if metadata is not None and metadata.captured:
        lines.append(
            f"(Host: {metadata.host or ''} User: {metadata.user or ''} "
            f"Date: {metadata.date or ''})"
        )
    if params.inversion_pivot is not None:
        lines.append("(inverted)")
    return TITLE_LINE_BREAK.join(lines)


def assemble_dataset_container(
    series: Sequence[RawSeries],
    title: str,
    y_max: float,
    autoscale: bool,
    y_label: str = "",
    explicit_title: bool = False,
) -> DatasetContainer:
    if not series:
        raise NoDataError("No data series to plot")
    return DatasetContainer(
        series=tuple(series),
        metadata=PlotMetadata(
            title=title,
            y_max=float(y_max),
            autoscale=bool(autoscale),
            y_label=y_label,
            explicit_title=explicit_title,
        ),
    )


def extract_series(path: Union[str, Path], ref: ColumnRef, verbose: bool = False) -> RawSeries:
    """Resolve `ref` against the file's own header and extract that column."""
    with DstatCsvReader(path) as reader:
        try:
            column = resolve_column(reader.read_schema(), ref)
        except ColumnNotFoundError as e:
            raise type(e)(e.requested, e.allowed, source=reader.name) from None
        if verbose:
            logger.info(f"{reader.name}: {reader.get_file_info()}")
        return reader.extract(column)


def read_datasets(
    files: Sequence[Union[str, Path]],
    ref: ColumnRef,
    params: TransformParams,
    y_max: Optional[float] = None,
    title: Optional[str] = None,
    verbose: bool = False,
) -> DatasetContainer:
    """
    Build one DatasetContainer from many files.

    Files are read eagerly in the given order and the first failure aborts the
    run. The title comes from the first file; the axis state is folded over the
    transformed series in file order.
    """
    if not files:
        raise NoDataError("No input files found")

    logger.debug(f"Reading from csv to get {ref.prefix()}.")
    extracted = [extract_series(f, ref, verbose=verbose) for f in files]
    transformed = [transform_series(s, params, verbose=verbose) for s in extracted]

    plot_title = build_plot_title(ref.prefix(), params, extracted[0].metadata, title)

    state = AxisState.initial(y_max, params.inversion_pivot)
    for s in transformed:
        state = state.update(s.values)

    logger.debug(
        f"datasets: {len(transformed)} | plot_title: {plot_title} | "
        f"y_max: {state.y_max} | autoscale: {state.autoscale}"
    )
    return assemble_dataset_container(
        transformed,
        title=plot_title,
        y_max=state.y_max,
        autoscale=state.autoscale,
        y_label=ref.axis_label(),
        explicit_title=title is not None,
    )


def generate_filename(
    output: Optional[Union[str, Path]], ref: ColumnRef, target_dir: Union[str, Path]
) -> Path:
    """
    Output path for the chart.

    An existing directory gets a generated basename, any other explicit path is
    used verbatim, no output puts the generated basename into target_dir.
    """
    if ref.is_index:
        generated = f"column-{ref.index}.png"
    else:
        generated = sanitize_filename_component(f"{ref.category}-{ref.field}") + ".png"

    if output is not None:
        output = Path(output)
        return output / generated if output.is_dir() else output
    return Path(target_dir) / generated


# -------------------------
# Rendering
# -------------------------
def render_title(title: str, explicit: bool = False) -> str:
    if explicit:
        return title
    return title.replace(TITLE_LINE_BREAK, "\n")


def render_dataset_container(
    container: DatasetContainer,
    output_path: Optional[Union[str, Path]] = None,
    dry_run: bool = False,
    show_legend: bool = True,
    smoothing: Optional[SmoothingAlgorithm] = None,
) -> Optional[str]:
    """
    Draw every series as a line and save the figure.

    The image format follows the output extension. With dry_run the figure is
    built but nothing is written and None is returned.
    """
    meta = container.metadata

    plt.style.use("dark_background")
    fig = plt.figure(figsize=FIGURE_SIZE, dpi=FIGURE_DPI)

    for series in container.series:
        x, y = series.timestamps, series.values
        if smoothing is not None:
            x, y = apply_smoothing(x, y, smoothing)
        plt.plot(x, y, linestyle="-", linewidth=1.2, label=series.source_label)

    plt.title(render_title(meta.title, explicit=meta.explicit_title))
    plt.xlabel(meta.x_label)
    plt.ylabel(meta.y_label)

    if meta.autoscale:
        plt.autoscale(enable=True, axis="y")
    else:
        plt.ylim(bottom=0.0, top=meta.y_max * Y_HEADROOM)

    if show_legend:
        # Outside the axes, top right
        plt.legend(loc="upper left", bbox_to_anchor=(1.01, 1.0), borderaxespad=0.0)
    plt.tight_layout()

    if dry_run:
        logger.info(
            f"Dry run: plot with {len(container.series)} series not saved"
            + (f" (would be '{output_path}')" if output_path is not None else "")
        )
        plt.close(fig)
        return None

    if output_path is None:
        plt.close(fig)
        raise ValueError("output_path is required unless dry_run is set")

    fmt = Path(output_path).suffix.lstrip(".").lower() or "png"
    logger.info(f"Saving plot to '{output_path}'")
    plt.savefig(output_path, format=fmt)
    plt.close(fig)
    return str(output_path)


# -------------------------
# CLI
# -------------------------
def get_default_params() -> tuple[LoadParams, TransformParams, PlotParams]:
    """Default parameter objects; CLI values are merged over these."""
    load = LoadParams(files=[], column=None, target_dir=Path("."))
    trans = TransformParams(inversion_pivot=None, group_size=None, smoothing=None)
    plot = PlotParams(
        y_max=None, title=None, show_legend=True, dry_run=False, output=None
    )
    return load, trans, plot


def _build_cli_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="dstat-plot",
        description="Plot dstat CSV logs as line charts (one line per file).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dstat-plot -c "total cpu usage" -f usr logs/
  dstat-plot -c memory-usage -f used -a 10 run1.csv run2.csv
  dstat-plot -l 3 -i 100 -o plots/ logs/
        """,
    )

    parser.add_argument(
        "paths",
        nargs="*",
        metavar="directory | file",
        help="A directory (all *.csv inside it) or one or more CSV files. Default: '.'.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Output more information."
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show full tracebacks for debugging (also DSTAT_PLOT_DEBUG=1).",
    )
    parser.add_argument(
        "--print-defaults",
        action="store_true",
        help="Print default parameter values and exit.",
    )

    g_sel = parser.add_argument_group("Column selection")
    g_sel.add_argument("-c", "--category", help="Select the category.")
    g_sel.add_argument("-f", "--field", help="Select the field.")
    g_sel.add_argument(
        "-l",
        "--column",
        type=int,
        help="Select the desired column directly (-c and -f override -l).",
    )

    g_tr = parser.add_argument_group("Transforms")
    g_tr.add_argument(
        "-i",
        "--invert",
        nargs="?",
        type=float,
        const=DEFAULT_INVERSION_PIVOT,
        metavar="VALUE",
        help=f"Invert the graph such that inverted(x) = |VALUE - f(x)|, "
        f"default is {DEFAULT_INVERSION_PIVOT:g}.",
    )
    g_tr.add_argument(
        "-a",
        "--average-over",
        type=int,
        dest="group_size",
        metavar="SLICE_SIZE",
        help="Calculate the average for SLICE_SIZE large groups of values.",
    )
    g_tr.add_argument(
        "-s",
        "--smoothing",
        choices=SmoothingAlgorithm.names(),
        metavar="ALGORITHM",
        help="Smooth the graph using the given algorithm. "
        f"Choices: {', '.join(SmoothingAlgorithm.names())}",
    )

    g_plot = parser.add_argument_group("Plot")
    g_plot.add_argument(
        "-n", "--no-key", action="store_true", help="No plot key is printed."
    )
    g_plot.add_argument(
        "-d",
        "--dry",
        action="store_true",
        help="Dry run. The plot is built but not saved to a file.",
    )
    g_plot.add_argument(
        "-o",
        "--output",
        metavar="FILE|DIR",
        help="File or directory the plot is saved to. If a directory is given the "
        "filename is generated. Default is the csv file directory.",
    )
    g_plot.add_argument(
        "-y",
        "--y-range",
        type=float,
        dest="y_max",
        metavar="RANGE",
        help=f"Set the y-axis maximum. Default is {Y_DEFAULT:g}. If a value exceeds "
        "this range, autoscale is enabled.",
    )
    g_plot.add_argument(
        "-t", "--title", help="Override the default title of the plot."
    )

    return parser


def _expand_bare_invert(argv: Sequence[str]) -> List[str]:
    """
    Give a bare -i/--invert its default pivot when the next token is not a number.

    Without this, argparse would take a following path as the pivot value and
    fail on it. A numeric token after the flag is still read as the pivot.
    """
    out: List[str] = []
    tokens = list(argv)
    for pos, token in enumerate(tokens):
        if token == "--":
            out.extend(tokens[pos:])
            break
        if token in ("-i", "--invert") and pos + 1 < len(tokens):
            nxt = tokens[pos + 1]
            try:
                float(nxt)
            except ValueError:
                if not nxt.startswith("-"):
                    out.append(f"--invert={DEFAULT_INVERSION_PIVOT}")
                    continue
        out.append(token)
    return out


def _args_to_params(args) -> tuple[LoadParams, TransformParams, PlotParams]:
    """
    Merge CLI args over defaults to build parameter objects.
    Only override values explicitly provided by user; otherwise keep defaults.
    """
    d_load, d_trans, d_plot = get_default_params()

    category = getattr(args, "category", None)
    field_name = getattr(args, "field", None)
    column = getattr(args, "column", None)
    if category is not None and field_name is not None:
        ref = ColumnRef.by_name(category, field_name)
    elif column is not None:
        if column < 0:
            raise ValueError(f"--column must be a non-negative integer, got: {column}")
        ref = ColumnRef.by_index(column)
    else:
        raise ValueError(
            "(-c CATEGORY and -f FIELD) or (-l COLUMN) are mandatory parameters."
        )

    files, target_dir = discover_input_files(getattr(args, "paths", None) or [])
    load = LoadParams(files=files, column=ref, target_dir=target_dir)

    smoothing = getattr(args, "smoothing", None)
    trans = TransformParams(
        inversion_pivot=getattr(args, "invert", None)
        if getattr(args, "invert", None) is not None
        else d_trans.inversion_pivot,
        group_size=getattr(args, "group_size", None)
        if getattr(args, "group_size", None) is not None
        else d_trans.group_size,
        smoothing=SmoothingAlgorithm.parse(smoothing)
        if smoothing is not None
        else d_trans.smoothing,
    )

    output = getattr(args, "output", None)
    plot = PlotParams(
        y_max=getattr(args, "y_max", None)
        if getattr(args, "y_max", None) is not None
        else d_plot.y_max,
        title=getattr(args, "title", None)
        if getattr(args, "title", None) is not None
        else d_plot.title,
        show_legend=not bool(getattr(args, "no_key", False)),
        dry_run=bool(getattr(args, "dry", False)) or d_plot.dry_run,
        output=Path(output) if output else d_plot.output,
    )
    return load, trans, plot


def _orchestrate(
    params_load: LoadParams,
    params_transform: TransformParams,
    params_plot: PlotParams,
    verbose: bool = False,
) -> Optional[str]:
    """
    Run the full pipeline given explicit parameter objects.
    Split from main() so the CLI can remain thin and tests can call this directly.
    """
    logger.info(f"Plotting data from {len(params_load.files)} file(s).")
    if verbose:
        logger.info(f"files: {[str(f) for f in params_load.files]}")

    container = read_datasets(
        params_load.files,
        params_load.column,
        params_transform,
        y_max=params_plot.y_max,
        title=params_plot.title,
        verbose=verbose,
    )
    filename = generate_filename(
        params_plot.output, params_load.column, params_load.target_dir
    )
    return render_dataset_container(
        container,
        output_path=filename,
        dry_run=params_plot.dry_run,
        show_legend=params_plot.show_legend,
        smoothing=params_transform.smoothing,
    )


def _defaults_payload() -> Dict[str, Any]:
    _, d_trans, d_plot = get_default_params()
    return {
        "TransformParams": {
            "inversion_pivot": d_trans.inversion_pivot,
            "inversion_pivot_when_flag_bare": DEFAULT_INVERSION_PIVOT,
            "group_size": d_trans.group_size,
            "smoothing": None if d_trans.smoothing is None else d_trans.smoothing.value,
            "smoothing_choices": SmoothingAlgorithm.names(),
        },
        "PlotParams": {
            "y_max": d_plot.y_max,
            "y_default": Y_DEFAULT,
            "title": d_plot.title,
            "show_legend": d_plot.show_legend,
            "dry_run": d_plot.dry_run,
            "output": d_plot.output,
        },
    }


def main(argv: Optional[List[str]] = None) -> None:
    """
    CLI entry point. Parses arguments, builds parameter objects, then orchestrates.
    """
    # Configure logging for the CLI run
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
    )
    argv = sys.argv[1:] if argv is None else argv
    parser = _build_cli_parser()
    args = parser.parse_intermixed_args(_expand_bare_invert(argv))

    if args.print_defaults:
        import json

        print(json.dumps(_defaults_payload(), indent=2))
        return

    # Enable debug mode via --debug flag or environment variable DSTAT_PLOT_DEBUG=1
    debug_mode = bool(args.debug or os.getenv("DSTAT_PLOT_DEBUG", "") == "1")
    verbose = bool(args.verbose or debug_mode)
    if verbose:
        logging.getLogger(__package__ or __name__).setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)

    try:
        params_load, params_transform, params_plot = _args_to_params(args)
    except ValueError as e:
        # Prints usage and exits with status 2
        parser.error(str(e))

    try:
        _orchestrate(params_load, params_transform, params_plot, verbose=verbose)
    except ColumnNotFoundError as e:
        where = f" ({e.source})" if e.source else ""
        print(
            f"'{e.requested}' is not a valid parameter for '{e.kind}'{where}.",
            file=sys.stderr,
        )
        print(f"Allowed {e.plural}: {e.allowed}", file=sys.stderr)
        sys.exit(2)
    except (FileNotFoundError, CSVProcessingError, ValueError) as e:
        # Concise, user-facing errors for common/user-correctable problems.
        # NoDataError and InvalidTransformConfigError are ValueErrors.
        logger.info("User-facing error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        # Unexpected/internal errors: log full exception. Show traceback only when debugging.
        logger.exception("Unhandled exception during execution")
        if debug_mode:
            import traceback

            traceback.print_exc()
        else:
            print(f"Unexpected error: {e}", file=sys.stderr)
            print(
                "Run with --debug or set DSTAT_PLOT_DEBUG=1 to see the full traceback.",
                file=sys.stderr,
            )
        sys.exit(1)


if __name__ == "__main__":
    main()
