"""Aggregation and rendering of deployment outcomes."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

from shipyard.lib.ui.colors import ANSIColors, colorize
from shipyard.models.deployment import (
    DeploymentDecision,
    DeployOutcome,
    FailureCategory,
)
from shipyard.models.deployment_state import DeploymentRecord

BANNER_WIDTH = 60


@dataclass
class DeploymentSummary:
    """Summary of one deployment run.

    Attributes:
        environment: Target stage
        successes: Successful outcomes, in deploy order
        failures: Failed outcomes, in deploy order
        skipped: Decisions for modules that did not need deployment
        total_duration_ms: Sum of per-module durations
        total_endpoints: Number of endpoints produced by successful deploys
        failures_by_category: Failure counts keyed by category
    """

    environment: str
    successes: list[DeployOutcome] = field(default_factory=list)
    failures: list[DeployOutcome] = field(default_factory=list)
    skipped: list[DeploymentDecision] = field(default_factory=list)
    total_duration_ms: int = 0
    total_endpoints: int = 0
    failures_by_category: dict[FailureCategory, int] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        """Return True when no deployment failed (including when none ran)."""
        return not self.failures

    @property
    def deployed_count(self) -> int:
        """Number of modules a deploy was attempted for."""
        return len(self.successes) + len(self.failures)


def aggregate(
    outcomes: Iterable[DeployOutcome],
    environment: str,
    skipped: Iterable[DeploymentDecision] = (),
) -> DeploymentSummary:
    """Partition outcomes and compute run totals."""
    summary = DeploymentSummary(environment=environment, skipped=list(skipped))
    categories: Counter[FailureCategory] = Counter()

    for outcome in outcomes:
        summary.total_duration_ms += outcome.duration_ms
        if outcome.success:
            summary.successes.append(outcome)
            summary.total_endpoints += len(outcome.endpoints)
        else:
            summary.failures.append(outcome)
            categories[outcome.failure_category or FailureCategory.UNKNOWN] += 1

    summary.failures_by_category = dict(categories)
    return summary


def build_records(
    previous: Mapping[str, DeploymentRecord],
    outcomes: Iterable[DeployOutcome],
) -> dict[str, DeploymentRecord]:
    """Merge successful outcomes into the previous stage records.

    Failed modules keep whatever record they had before, so a flaky deploy
    neither erases prior good state nor marks the module as up to date.
    """
    records = dict(previous)
    for outcome in outcomes:
        if not outcome.success:
            continue
        records[outcome.module_name] = DeploymentRecord(
            deployed_at=outcome.deployed_at or datetime.now(timezone.utc),
            source_revision=outcome.source_revision,
            content_fingerprint=outcome.content_fingerprint,
            environment=outcome.environment,
        )
    return records


def render_summary(
    summary: DeploymentSummary,
    elapsed_ms: int | None = None,
    color: bool | None = None,
) -> str:
    """Render a human-readable deployment report.

    Args:
        summary: Aggregated run summary (may be empty)
        elapsed_ms: Wall-clock run duration; defaults to the summed durations
        color: Force ANSI colors on or off; None auto-detects a TTY

    Returns:
        Multi-line report text
    """

    def _c(text: str, code: str) -> str:
        return colorize(text, code, force_tty=color)

    rule = _c("=" * BANNER_WIDTH, ANSIColors.CYAN)
    duration = elapsed_ms if elapsed_ms is not None else summary.total_duration_ms
    failed_color = ANSIColors.RED if summary.failures else ANSIColors.GREEN

    lines = [
        rule,
        _c("DEPLOYMENT SUMMARY", ANSIColors.CYAN),
        rule,
        f"Stage:          {summary.environment}",
        f"Total duration: {duration}ms",
        _c(f"Successful:     {len(summary.successes)}", ANSIColors.GREEN),
        _c(f"Failed:         {len(summary.failures)}", failed_color),
        f"Skipped:        {len(summary.skipped)}",
    ]

    if summary.deployed_count == 0:
        lines += ["", _c("No modules needed deployment.", ANSIColors.GREEN)]

    if summary.successes:
        lines += ["", _c("SUCCESSFUL DEPLOYMENTS:", ANSIColors.GREEN)]
        for outcome in summary.successes:
            lines.append(
                _c(f"  {outcome.module_name} ({outcome.duration_ms}ms)", ANSIColors.GREEN)
            )
            if outcome.endpoints:
                lines.append(
                    _c(f"    Endpoints ({len(outcome.endpoints)}):", ANSIColors.CYAN)
                )
                lines += [
                    _c(f"      {endpoint}", ANSIColors.CYAN)
                    for endpoint in outcome.endpoints
                ]
            else:
                lines.append("    No HTTP endpoints (functions only)")
            if outcome.source_revision:
                lines.append(f"    Revision: {outcome.source_revision[:8]}")
        if summary.total_endpoints:
            lines += ["", f"Total endpoints deployed: {summary.total_endpoints}"]

    if summary.failures:
        lines += ["", _c("FAILED DEPLOYMENTS:", ANSIColors.RED)]
        for outcome in summary.failures:
            lines.append(
                _c(f"  {outcome.module_name}: {outcome.error_message}", ANSIColors.RED)
            )
            category = outcome.failure_category or FailureCategory.UNKNOWN
            lines.append(_c(f"    Category: {category.value}", ANSIColors.YELLOW))
        lines += ["", _c("Error summary:", ANSIColors.YELLOW)]
        for category, count in summary.failures_by_category.items():
            lines.append(
                _c(f"  {category.value}: {count} failure(s)", ANSIColors.YELLOW)
            )

    if summary.skipped:
        lines += ["", _c("SKIPPED MODULES:", ANSIColors.YELLOW)]
        lines += [
            f"  {decision.module_name}: {decision.reason.value}"
            for decision in summary.skipped
        ]

    lines.append(rule)
    return "\n".join(lines)
