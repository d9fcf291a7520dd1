"""Command-line interface for streamingml."""

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import polars as pl
import typer
from rich.logging import RichHandler

from streamingml.base import MLError
from streamingml.config import ConfigError, load_config
from streamingml.model import AdaptiveModelRulesModel
from streamingml.report import ReplayReport

app = typer.Typer(
    name="streamingml",
    help="Online adaptive model rules regression for event streams",
    add_completion=False,
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def _read_frame(file: Path) -> pl.DataFrame:
    if file.suffix.lower() == ".parquet":
        return pl.read_parquet(file)
    return pl.read_csv(file)


@app.command(name="replay")
def replay_cmd(
    file: Annotated[Path, typer.Argument(help="CSV or Parquet file of training events")],
    target: Annotated[
        Optional[str],
        typer.Option("--target", "-t", help="Target column (default: last column)"),
    ] = None,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Configuration file (YAML, JSON or TOML)"),
    ] = None,
    split_confidence: Annotated[
        Optional[float],
        typer.Option("--split-confidence", help="Hoeffding split confidence"),
    ] = None,
    tie_threshold: Annotated[
        Optional[float],
        typer.Option("--tie-threshold", help="Hoeffding tie threshold"),
    ] = None,
    grace_period: Annotated[
        Optional[int],
        typer.Option("--grace-period", "-g", help="Instances between split attempts"),
    ] = None,
    change_detector: Annotated[
        Optional[int],
        typer.Option(
            "--change-detector",
            help="0:NoChangeDetection, 1:ADWINChangeDetector, 2:PageHinkleyDM",
        ),
    ] = None,
    anomaly_detector: Annotated[
        Optional[int],
        typer.Option(
            "--anomaly-detector",
            help="0:NoAnomalyDetection, 1:AnomalinessRatioScore, 2:OddsRatioScore",
        ),
    ] = None,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (console, json)"),
    ] = "console",
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log rule creation and drift"),
    ] = False,
) -> None:
    """Train a model on every row of a file and report its rules."""
    _setup_logging(verbose)
    if not file.exists():
        typer.echo(f"Error: File not found: {file}", err=True)
        raise typer.Exit(1)

    overrides = {
        key: value
        for key, value in {
            "split_confidence": split_confidence,
            "tie_threshold": tie_threshold,
            "grace_period": grace_period,
            "change_detector": change_detector,
            "anomaly_detector": anomaly_detector,
        }.items()
        if value is not None
    }

    try:
        config = load_config(config_file, overrides=overrides)
    except (ConfigError, MLError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    frame = _read_frame(file)
    target = target or frame.columns[-1]
    if target not in frame.columns:
        typer.echo(f"Error: Target column not found: {target}", err=True)
        raise typer.Exit(1)
    features = [c for c in frame.columns if c != target]
    if not features:
        typer.echo("Error: The file needs at least one feature column", err=True)
        raise typer.Exit(1)

    model = AdaptiveModelRulesModel(file.stem, len(features), config=config)
    history = []
    try:
        for row in frame.select([*features, target]).iter_rows():
            history.append(model.train_on_event(row).mean_squared_error)
    except MLError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    report = ReplayReport(
        source=str(file),
        model_name=model.key,
        features=features,
        target=target,
        rows=frame.height,
        mean_squared_error=model.mean_squared_error,
        rules=model.rules_frame(),
        mse_history=history,
    )
    if format == "json":
        typer.echo(report.to_json())
    else:
        report.print()


@app.command(name="config")
def config_cmd(
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Configuration file (YAML, JSON or TOML)"),
    ] = None,
) -> None:
    """Print the effective hyperparameters."""
    try:
        config = load_config(config_file)
    except (ConfigError, MLError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(config.to_dict(), indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
