"""Report of a model replayed over a recorded event stream."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field

import polars as pl
from rich.console import Console
from rich.table import Table


@dataclass
class ReplayReport:
    """Outcome of training a model on every row of a file."""

    source: str
    model_name: str
    features: list[str]
    target: str
    rows: int
    mean_squared_error: float
    rules: pl.DataFrame
    mse_history: list[float] = field(default_factory=list)

    @property
    def n_rules(self) -> int:
        """Number of ordinary rules (the default rule excluded)."""
        return max(self.rules.height - 1, 0)

    @property
    def peak_mean_squared_error(self) -> float:
        """Highest running MSE reached during the replay."""
        return max(
            (mse for mse in self.mse_history if not math.isnan(mse)),
            default=self.mean_squared_error,
        )

    @property
    def peak_row(self) -> int | None:
        """1-based row at which the peak MSE was first reached."""
        peak = self.peak_mean_squared_error
        for row, mse in enumerate(self.mse_history, start=1):
            if mse == peak:
                return row
        return None

    def __str__(self) -> str:
        console = Console(force_terminal=True, width=100)
        with console.capture() as capture:
            self.print(console)
        return capture.get()

    def print(self, console: Console | None = None) -> None:
        console = console or Console()
        console.print()
        console.print("[bold]streamingml Replay Report[/bold]")
        console.print("━" * 70)
        console.print(f"Source:   {self.source} ({self.rows:,} rows)")
        console.print(f"Model:    {self.model_name}")
        console.print(f"Features: {', '.join(self.features)}")
        console.print(f"Target:   {self.target}")
        console.print(f"MSE:      {self.mean_squared_error}")
        if self.peak_row is not None:
            console.print(
                f"Peak MSE: {self.peak_mean_squared_error} (row {self.peak_row:,})"
            )
        console.print()

        table = Table(show_header=True, header_style="bold")
        table.add_column("Rule", style="cyan", justify="right")
        table.add_column("Conditions", style="white")
        table.add_column("Instances", justify="right")
        table.add_column("Mean", justify="right")
        table.add_column("Drifts", justify="right")
        table.add_column("Anomalies", justify="right")
        for row in self.rules.iter_rows(named=True):
            table.add_row(
                "default" if row["conditions"] == "default" else str(row["rule_id"]),
                row["conditions"],
                f"{row['instances_seen']:,}",
                f"{row['target_mean']:.3f}",
                str(row["n_drifts"]),
                str(row["n_anomalies"]),
            )
        console.print(table)
        console.print()

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "model_name": self.model_name,
            "features": self.features,
            "target": self.target,
            "rows": self.rows,
            "mean_squared_error": self.mean_squared_error,
            "peak_mean_squared_error": self.peak_mean_squared_error,
            "peak_row": self.peak_row,
            "n_rules": self.n_rules,
            "rules": self.rules.to_dicts(),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
