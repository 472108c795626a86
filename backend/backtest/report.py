"""Report formatting for backtest results.

Outputs results to console and JSON files.
"""

import json
from datetime import datetime, timedelta

from backtest.simulator import BacktestReport


class ReportEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, timedelta):
            return obj.total_seconds()
        return super().default(obj)


class ReportFormatter:
    """Format backtest results for display and export."""

    @staticmethod
    def print_console(report: BacktestReport) -> None:
        """Print formatted report to console."""
        print("\n" + "=" * 70)
        print(f"  BACKTEST RESULTS - {report.ticker} buy rules")
        print("=" * 70)
        print(f"  Period: {report.start:%Y-%m-%d %H:%M} -> {report.end:%Y-%m-%d %H:%M}")
        print(
            f"  Step: {report.step.total_seconds() / 60:.0f}m   "
            f"Lookback: {report.lookback.total_seconds() / 3600:.0f}h"
        )

        print("\n" + "-" * 70)
        print("  OVERALL")
        print("-" * 70)
        print(f"  Steps evaluated:     {report.steps_evaluated}")
        print(f"  Steps without data:  {report.steps_without_data}")
        print(f"  Short history:       {report.steps_insufficient}")
        print(f"  Buy signals:         {report.total_firings}")

        if report.by_rule:
            print("\n" + "-" * 70)
            print("  BY RULE")
            print("-" * 70)
            print(f"  {'Rule':<30} {'Signals':>8}")
            for rule_id, count in report.by_rule.items():
                print(f"  {rule_id:<30} {count:>8}")

        if report.firings:
            print("\n" + "-" * 70)
            print("  SIGNALS")
            print("-" * 70)
            for f in report.firings:
                print(f"  {f.timestamp:%Y-%m-%d %H:%M}  {f.price:>14.2f}  {f.rule_id}")

        print("\n" + "=" * 70)

    @staticmethod
    def to_dict(report: BacktestReport) -> dict:
        """Convert results to JSON-serializable dict."""
        return {
            "metadata": {
                "ticker": report.ticker,
                "start": report.start.isoformat(),
                "end": report.end.isoformat(),
                "step_minutes": report.step.total_seconds() / 60,
                "lookback_hours": report.lookback.total_seconds() / 3600,
            },
            "overall": {
                "steps_evaluated": report.steps_evaluated,
                "steps_without_data": report.steps_without_data,
                "steps_insufficient": report.steps_insufficient,
                "total_firings": report.total_firings,
            },
            "by_rule": report.by_rule,
            "firings": [
                {
                    "timestamp": f.timestamp.isoformat(),
                    "price": f.price,
                    "rule_id": f.rule_id,
                }
                for f in report.firings
            ],
        }

    @staticmethod
    def save_json(report: BacktestReport, path: str) -> None:
        """Save results to a JSON file."""
        with open(path, "w") as f:
            json.dump(ReportFormatter.to_dict(report), f, indent=2, cls=ReportEncoder)
        print(f"\nResults saved to {path}")
