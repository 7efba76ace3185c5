# SPDX-License-Identifier: MIT
"""pointforge command line: generate, ingest and append time-series points.

Positional arguments are classified in order: append command names, numbers
(manual values), ``gap`` markers, existing files (CSV or Excel inputs), then
unique ids and ``Parameter.Label@Location`` identifiers (the target series).
An argument of the form ``@path`` is replaced by the options read from that
file, one whole argument per line; blank lines and ``#`` or ``//`` comments are
skipped.
"""

from __future__ import annotations

import math
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import click
from pydantic import ValidationError

from . import __version__
from .client import TimeSeriesClient, is_unique_id, parse_series_identifier
from .config import (
    AppendBatchPolicy,
    ColumnFormatSpec,
    CommandType,
    ConnectionSettings,
    CsvFormat,
    ManualSpec,
    RunConfig,
    SourceCopySpec,
    TransformOptions,
    WaveformSpec,
    WaveformType,
)
from .exceptions import (
    AppendTimeoutError,
    ConfigurationError,
    IngestionError,
    PointForgeError,
    RemoteError,
)
from .mappings import GradeMapping, QualifierMapping, parse_qualifier_list
from .pipeline import RunResult, run
from .timeutils import TimeRange, parse_duration, parse_instant, parse_interval, parse_utc_offset
from .utils.logging import configure_logging

__all__ = ["cli", "classify_tokens", "expand_option_files", "main"]

GAP_TOKEN = "gap"
_COMMENT_PREFIXES = ("#", "//")
_WAVEFORM_PARAMETERS = (
    "waveform_type",
    "number_of_points",
    "number_of_periods",
    "waveform_period",
    "waveform_scalar",
    "waveform_offset",
    "waveform_phase",
    "waveform_text_x",
    "waveform_text_y",
)


class CLIError(click.ClickException):
    """Base class for typed CLI failures with deterministic exit codes."""

    exit_code = 1


class ConfigError(CLIError):
    exit_code = 2


class IngestError(CLIError):
    exit_code = 3


class RemoteFailure(CLIError):
    exit_code = 4


class AppendTimeout(CLIError):
    exit_code = 5


def _as_cli_error(exc: PointForgeError) -> CLIError:
    if isinstance(exc, ConfigurationError):
        return ConfigError(str(exc))
    if isinstance(exc, IngestionError):
        return IngestError(str(exc))
    if isinstance(exc, RemoteError):
        return RemoteFailure(str(exc))
    if isinstance(exc, AppendTimeoutError):
        return AppendTimeout(str(exc))
    return CLIError(str(exc))


def _validation_message(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "__root__")
        text = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
        messages.append(f"{location}: {text}" if location else text)
    return "; ".join(messages)


class _ParsedType(click.ParamType):
    """Adapt a ``str -> value`` parser raising ``ValueError`` into a click type."""

    def __init__(self, name: str, parser: Any) -> None:
        self.name = name
        self._parser = parser

    def convert(self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]) -> Any:
        if not isinstance(value, str):
            return value
        try:
            return self._parser(value)
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


INSTANT = _ParsedType("instant", parse_instant)
INTERVAL = _ParsedType("interval", parse_interval)
DURATION = _ParsedType("duration", parse_duration)
UTC_OFFSET = _ParsedType("utc-offset", parse_utc_offset)


def _read_option_file(path: Path, seen: tuple[Path, ...]) -> List[str]:
    resolved = path.resolve()
    if resolved in seen:
        raise ConfigurationError(f"'{path}' includes itself")
    try:
        lines = path.read_text(encoding="utf-8-sig").splitlines()
    except OSError as exc:
        raise ConfigurationError(f"Unable to read options file '{path}': {exc}") from exc
    arguments: List[str] = []
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(_COMMENT_PREFIXES):
            continue
        arguments.extend(_expand([stripped], seen + (resolved,)))
    return arguments


def _expand(arguments: Iterable[str], seen: tuple[Path, ...]) -> List[str]:
    expanded: List[str] = []
    for argument in arguments:
        if argument.startswith("@") and len(argument) > 1:
            expanded.extend(_read_option_file(Path(argument[1:]), seen))
        else:
            expanded.append(argument)
    return expanded


def expand_option_files(arguments: Sequence[str]) -> List[str]:
    """Replace every ``@path`` argument with the options listed in that file."""

    return _expand(arguments, ())


class ClassifiedTokens:
    """Positional arguments sorted into their roles."""

    def __init__(self) -> None:
        self.command: Optional[CommandType] = None
        self.values: List[Optional[float]] = []
        self.files: List[Path] = []
        self.time_series: Optional[str] = None


def classify_tokens(tokens: Iterable[str]) -> ClassifiedTokens:
    classified = ClassifiedTokens()
    commands = {command.value: command for command in CommandType}
    for token in tokens:
        lowered = token.strip().lower()
        if lowered in commands:
            classified.command = commands[lowered]
            continue
        try:
            value = float(token)
        except ValueError:
            pass
        else:
            if not math.isfinite(value):
                raise ConfigurationError(f"'{token}' is not a finite number")
            classified.values.append(value)
            continue
        if lowered == GAP_TOKEN:
            classified.values.append(None)
            continue
        if Path(token).is_file():
            classified.files.append(Path(token))
            continue
        if is_unique_id(token) or _looks_like_identifier(token):
            if classified.time_series is not None:
                raise ConfigurationError(
                    f"Only one target time series is allowed: '{classified.time_series}' and '{token}'"
                )
            classified.time_series = token.strip()
            continue
        raise ConfigurationError(f"Don't know what to do with '{token}'")
    return classified


def _looks_like_identifier(token: str) -> bool:
    try:
        parse_series_identifier(token)
    except ConfigurationError:
        return False
    return True


def _unescape(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.replace("\\t", "\t")


def _explicit(ctx: click.Context, names: Iterable[str]) -> bool:
    return any(
        ctx.get_parameter_source(name) not in (None, click.core.ParameterSource.DEFAULT) for name in names
    )


def build_config(ctx: click.Context, tokens: Sequence[str], options: Dict[str, Any]) -> RunConfig:
    """Turn parsed command line options into a validated :class:`RunConfig`."""

    try:
        return _build_config(ctx, tokens, options)
    except ValidationError as exc:
        raise ConfigurationError(_validation_message(exc)) from exc
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _build_config(ctx: click.Context, tokens: Sequence[str], options: Dict[str, Any]) -> RunConfig:
    classified = classify_tokens(tokens)
    time_series = options["time_series"] or classified.time_series
    if options["time_series"] and classified.time_series and options["time_series"] != classified.time_series:
        raise ConfigurationError(f"Conflicting target time series '{options['time_series']}' and '{classified.time_series}'")
    if time_series and not is_unique_id(time_series):
        parse_series_identifier(time_series)

    connection = None
    if options["server"]:
        connection = ConnectionSettings(
            server=options["server"],
            username=options["username"],
            password=options["password"],
            session_token=options["session_token"],
            timeout_seconds=options["http_timeout"],
        )

    start_time: datetime = options["start_time"] or datetime.now(timezone.utc).replace(microsecond=0)
    point_interval: timedelta = options["point_interval"]
    grade_code: Optional[int] = options["grade_code"]
    qualifiers = parse_qualifier_list(options["qualifiers"])

    manual = None
    if classified.values:
        manual = ManualSpec(
            values=tuple(classified.values),
            start_time=start_time,
            point_interval=point_interval,
            grade_code=grade_code,
            qualifiers=qualifiers,
        )

    csv_files = tuple(options["csv_files"]) + tuple(classified.files)
    csv_format = ColumnFormatSpec.from_preset(
        options["csv_format"],
        date_time_field=options["csv_date_time_field"],
        date_time_format=options["csv_date_time_format"],
        date_only_field=options["csv_date_only_field"],
        date_only_format=options["csv_date_only_format"],
        time_only_field=options["csv_time_only_field"],
        time_only_format=options["csv_time_only_format"],
        default_time_of_day=options["csv_default_time_of_day"],
        value_field=options["csv_value_field"],
        grade_field=options["csv_grade_field"],
        qualifiers_field=options["csv_qualifiers_field"],
        comment_prefix=options["csv_comment"],
        skip_rows=options["csv_skip_rows"],
        delimiter=_unescape(options["csv_delimiter"]),
        qualifier_delimiter=_unescape(options["csv_qualifier_delimiter"]),
        nan_value=options["csv_nan_value"],
        ignore_invalid_rows=options["csv_ignore_invalid_rows"],
        utc_offset_minutes=(
            int(options["utc_offset"].utcoffset(None).total_seconds() // 60) if options["utc_offset"] else None
        ),
        sheet_number=options["excel_sheet_number"],
        sheet_name=options["excel_sheet_name"],
    )

    source_copy = None
    if options["source_time_series"]:
        source_copy = SourceCopySpec.parse(
            options["source_time_series"],
            query_from=options["source_query_from"],
            query_to=options["source_query_to"],
        )

    has_other_source = bool(manual or csv_files or source_copy)
    waveform = None
    if _explicit(ctx, _WAVEFORM_PARAMETERS) or not has_other_source:
        waveform = WaveformSpec(
            waveform_type=options["waveform_type"],
            start_time=start_time,
            point_interval=point_interval,
            number_of_points=options["number_of_points"],
            number_of_periods=options["number_of_periods"],
            period=options["waveform_period"],
            scalar=options["waveform_scalar"],
            offset=options["waveform_offset"],
            phase=options["waveform_phase"],
            text_x=options["waveform_text_x"],
            text_y=options["waveform_text_y"],
            grade_code=grade_code,
            qualifiers=qualifiers,
        )

    transform = TransformOptions(
        ignore_grades=options["ignore_grades"],
        ignore_qualifiers=options["ignore_qualifiers"],
        grade_mapping=GradeMapping.from_rules(options["grade_mapping"]),
        qualifier_mapping=QualifierMapping.from_rules(options["qualifier_mapping"]),
        realign=options["realign"],
        remove_duplicates=options["remove_duplicates"],
        start_time=start_time,
    )

    batch_policy = AppendBatchPolicy(
        batch_size=options["batch_size"],
        wait=options["wait"],
        timeout=options["append_timeout"],
    )

    save_csv_path = options["save_csv_path"]
    stop_after_saving_csv = options["stop_after_saving_csv"] or (
        save_csv_path is not None and connection is None and not time_series
    )

    return RunConfig(
        connection=connection,
        time_series=time_series,
        command=options["command"] or classified.command or CommandType.AUTO,
        time_range=options["time_range"],
        manual=manual,
        waveform=waveform,
        csv_files=csv_files,
        csv_format=csv_format,
        source_copy=source_copy,
        transform=transform,
        batch_policy=batch_policy,
        save_csv_path=save_csv_path,
        stop_after_saving_csv=stop_after_saving_csv,
    )


def _report(config: RunConfig, result: RunResult) -> None:
    if result.csv_path is not None:
        click.echo(f"Saved {result.points} points to '{result.csv_path}'")
    if result.skipped_rows:
        click.echo(f"Skipped {result.skipped_rows} invalid rows", err=True)
    if result.append is None:
        return
    append = result.append
    if append.command is CommandType.DELETE_ALL_POINTS:
        click.echo(f"Deleted all points from '{config.time_series}'")
    else:
        click.echo(
            f"Appended {append.points_delivered} points to '{config.time_series}' "
            f"in {append.batches} batch(es) using {append.command.value}"
        )
    if append.statuses and not append.timed_out:
        click.echo(f"Store reports {append.points_appended} appended, {append.points_deleted} deleted")
    if append.timed_out:
        raise AppendTimeoutError(
            f"Timed out after {config.batch_policy.timeout} waiting for the appends to complete; "
            f"{append.points_delivered} points were accepted"
        )


@click.command(
    context_settings={
        "help_option_names": ["-h", "--help"],
        "ignore_unknown_options": True,
        "max_content_width": 120,
    }
)
@click.version_option(__version__, prog_name="pointforge")
@click.argument("tokens", nargs=-1, type=click.UNPROCESSED)
@click.option("-s", "--server", envvar="POINTFORGE_SERVER", help="Time-series store host name or URL.")
@click.option("-u", "--username", envvar="POINTFORGE_USERNAME", help="Store username.")
@click.option("-p", "--password", envvar="POINTFORGE_PASSWORD", help="Store password.")
@click.option("--session-token", envvar="POINTFORGE_SESSION_TOKEN", help="Existing session token to reuse.")
@click.option("--http-timeout", type=click.FloatRange(min=0, min_open=True), default=30.0, show_default=True)
@click.option("-t", "--time-series", help="Target time series identifier or unique id.")
@click.option(
    "--command",
    type=click.Choice([command.value for command in CommandType], case_sensitive=False),
    callback=lambda ctx, param, value: CommandType(value.lower()) if value else None,
    help="Append command. Defaults to auto.",
)
@click.option("--time-range", type=INTERVAL, help="Overwrite range as StartInstant/EndInstant.")
@click.option("--grade-code", type=int, help="Grade code for generated and manual points.")
@click.option("--qualifiers", help="Comma-separated qualifiers for generated and manual points.")
@click.option("--start-time", type=INSTANT, help="First point time. Defaults to now.")
@click.option("--point-interval", type=DURATION, default="00:01:00", show_default=True)
@click.option(
    "--waveform-type",
    type=click.Choice([waveform.value for waveform in WaveformType], case_sensitive=False),
    default=WaveformType.SINE.value,
    show_default=True,
)
@click.option("--number-of-points", type=click.IntRange(min=0), default=0, help="0 derives it from periods.")
@click.option("--number-of-periods", type=click.FloatRange(min=0), default=1.0, show_default=True)
@click.option("--waveform-period", type=click.FloatRange(min=0, min_open=True), default=1440.0, show_default=True)
@click.option("--waveform-scalar", type=float, default=1.0, show_default=True)
@click.option("--waveform-offset", type=float, default=0.0, show_default=True)
@click.option("--waveform-phase", type=float, default=0.0, show_default=True)
@click.option("--waveform-text-x", help="Text whose glyph X coordinates form the waveform.")
@click.option("--waveform-text-y", help="Text whose glyph Y coordinates form the waveform.")
@click.option(
    "--csv",
    "csv_files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="CSV or Excel file to load. Repeatable.",
)
@click.option(
    "--csv-format",
    type=click.Choice([fmt.value for fmt in CsvFormat], case_sensitive=False),
    default=CsvFormat.NG.value,
    show_default=True,
)
@click.option("--csv-date-time-field", type=click.IntRange(min=0))
@click.option("--csv-date-time-format")
@click.option("--csv-date-only-field", type=click.IntRange(min=0))
@click.option("--csv-date-only-format")
@click.option("--csv-time-only-field", type=click.IntRange(min=0))
@click.option("--csv-time-only-format")
@click.option("--csv-default-time-of-day")
@click.option("--csv-value-field", type=click.IntRange(min=1))
@click.option("--csv-grade-field", type=click.IntRange(min=0))
@click.option("--csv-qualifiers-field", type=click.IntRange(min=0))
@click.option("--csv-comment", help="Prefix of comment lines.")
@click.option("--csv-skip-rows", type=click.IntRange(min=0))
@click.option("--csv-delimiter", help="Column delimiter. Use \\t for tabs.")
@click.option("--csv-qualifier-delimiter")
@click.option("--csv-nan-value", help="Value text that marks a gap.")
@click.option("--csv-ignore-invalid-rows/--csv-fail-invalid-rows", default=None)
@click.option("--utc-offset", type=UTC_OFFSET, help="Offset applied to timestamps without one, e.g. +10:00.")
@click.option("--excel-sheet-number", type=click.IntRange(min=0))
@click.option("--excel-sheet-name")
@click.option("--source-time-series", help="Copy points from [server:user:pass]identifier.")
@click.option("--source-query-from", type=INSTANT)
@click.option("--source-query-to", type=INSTANT)
@click.option("--ignore-grades", is_flag=True)
@click.option("--ignore-qualifiers", is_flag=True)
@click.option("--grade-mapping", multiple=True, help="Grade rule low,high:mapped. Repeatable.")
@click.option("--qualifier-mapping", multiple=True, help="Qualifier rule source:mapped. Repeatable.")
@click.option("--realign", is_flag=True, help="Shift all points so the first lands on --start-time.")
@click.option("--remove-duplicates", is_flag=True, help="Drop points repeating the previous point's time.")
@click.option("--batch-size", type=click.IntRange(min=1), default=500_000, show_default=True)
@click.option("--wait/--no-wait", default=True, show_default=True, help="Wait for appends to complete.")
@click.option("--append-timeout", type=DURATION, default="00:05:00", show_default=True)
@click.option("--save-csv-path", type=click.Path(path_type=Path), help="File or directory to save points to.")
@click.option("--stop-after-saving-csv", is_flag=True)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines.")
@click.pass_context
def cli(ctx: click.Context, tokens: Sequence[str], log_level: str, json_logs: bool, **options: Any) -> None:
    """Generate, load and append time-series points."""

    configure_logging(level=log_level, use_json=json_logs)
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    try:
        options["waveform_type"] = WaveformType(options["waveform_type"].lower())
        options["csv_format"] = CsvFormat(options["csv_format"].lower())
        config = build_config(ctx, tokens, options)
        result = run(
            config,
            client_factory=obj.get("client_factory", TimeSeriesClient),
            **{key: obj[key] for key in ("clock", "sleeper") if key in obj},
        )
        _report(config, result)
    except PointForgeError as exc:
        raise _as_cli_error(exc) from exc


def main(argv: Optional[Sequence[str]] = None) -> None:
    arguments = list(sys.argv[1:] if argv is None else argv)
    try:
        arguments = expand_option_files(arguments)
    except ConfigurationError as exc:
        ConfigError(str(exc)).show()
        sys.exit(ConfigError.exit_code)
    cli.main(args=arguments, prog_name="pointforge")


if __name__ == "__main__":  # pragma: no cover
    main()
