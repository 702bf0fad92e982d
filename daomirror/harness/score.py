"""Per-operation success/fail counters printed at the end of a run."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from rich.console import Console
from rich.table import Table


SCORE_CATEGORIES = (
    "deposit",
    "delegate",
    "withdraw",
    "submitNewCampaign",
    "cancelCampaign",
    "vote",
    "noAction",
    "successCampaign",
)

_LABELS = {
    "deposit": "Deposit",
    "delegate": "Delegate",
    "withdraw": "Withdrawals",
    "submitNewCampaign": "SubmitNewCampaign",
    "cancelCampaign": "CancelCampaign",
    "vote": "Vote",
    "noAction": "Do nothing",
    "successCampaign": "Campaign has winning option",
}


@dataclass
class ScoreCount:
    success: int = 0
    fail: int = 0

    @property
    def total(self) -> int:
        return self.success + self.fail


@dataclass
class Scoreboard:
    counts: Dict[str, ScoreCount] = field(
        default_factory=lambda: {name: ScoreCount() for name in SCORE_CATEGORIES}
    )

    def record(self, category: str, success: bool) -> None:
        count = self.counts.setdefault(category, ScoreCount())
        if success:
            count.success += 1
        else:
            count.fail += 1

    def __getitem__(self, category: str) -> ScoreCount:
        return self.counts[category]

    @property
    def operations(self) -> int:
        """Operations applied, excluding the per-campaign resolution counter."""
        return sum(c.total for name, c in self.counts.items() if name != "successCampaign")

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: {"success": c.success, "fail": c.fail}
            for name, c in self.counts.items()
        }

    def render(self, console: Optional[Console] = None) -> None:
        table = Table(title="--- SIM RESULTS ---")
        table.add_column("Operation", style="bold")
        table.add_column("success", justify="right", style="green")
        table.add_column("fails", justify="right", style="red")
        for name, count in self.counts.items():
            table.add_row(_LABELS.get(name, name), str(count.success), str(count.fail))
        (console or Console()).print(table)
