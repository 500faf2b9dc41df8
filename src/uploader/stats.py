"""Run statistics owned by the batch controller, plus the end-of-run report."""

from __future__ import annotations

import datetime
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

# Cap on error entries written into the summary file
MAX_SUMMARY_ERRORS = 50


@dataclass
class ErrorRecord:
    document: str
    message: str
    identifier: Optional[str] = None

    def __str__(self) -> str:
        if self.identifier:
            return f"{self.document} ({self.identifier}): {self.message}"
        return f"{self.document}: {self.message}"


@dataclass
class RunStatistics:
    """Counters for one batch run.

    ``total`` counts documents found, ``success``/``failed`` count documents by
    final folder, and ``skipped`` counts individual supplier codes whose
    search returned no data.
    """

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[ErrorRecord] = field(default_factory=list)
    aborted: bool = False
    started_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    finished_at: Optional[datetime.datetime] = None

    def record_success(self) -> None:
        self.success += 1

    def record_failure(self) -> None:
        self.failed += 1

    def record_skip(self) -> None:
        self.skipped += 1

    def record_error(self, document: str, message: str, identifier: Optional[str] = None) -> None:
        self.errors.append(ErrorRecord(document=document, message=message, identifier=identifier))

    def finish(self) -> None:
        self.finished_at = datetime.datetime.now()

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.datetime.now()
        return (end - self.started_at).total_seconds()

    @property
    def success_rate(self) -> int:
        """Whole-percent share of documents that landed in the done folder."""
        if self.total <= 0:
            return 0
        return round(self.success / self.total * 100)

    def render_report(self) -> List[str]:
        lines = [
            "=" * 60,
            "📈 AUTOMATION SUMMARY",
            "=" * 60,
            f"⏱️  Total execution time: {round(self.duration_seconds)} seconds",
            f"📁 Total files processed: {self.total}",
            f"✅ Successful uploads: {self.success}",
            f"❌ Failed uploads: {self.failed}",
            f"⚠️  Skipped (no approved TA): {self.skipped}",
        ]
        if self.aborted:
            lines.append("🛑 Batch aborted: browser could not be reinitialized")
        if self.errors:
            lines.append("")
            lines.append("📋 Error Details:")
            for index, error in enumerate(self.errors, start=1):
                lines.append(f"   {index}. {error}")
        lines.append("")
        lines.append(f"📊 Success Rate: {self.success_rate}%")
        lines.append("=" * 60)
        return lines

    def log_report(self) -> None:
        for line in self.render_report():
            logging.info(line)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "success_rate": self.success_rate,
            "aborted": self.aborted,
        }


def save_run_summary(stats: RunStatistics, mode: str, logs_dir: str = "logs") -> str:
    """Save the run summary to a timestamped JSON file and to ``run_summary_latest.json``."""
    duration = stats.duration_seconds
    errors = [asdict(e) for e in stats.errors]

    summary = {
        "run_metadata": {
            "timestamp": stats.started_at.isoformat(),
            "mode": mode,
            "duration_seconds": round(duration, 2),
            "duration_human": f"{int(duration // 60)}m {int(duration % 60)}s",
            "success": stats.failed == 0 and not stats.aborted,
        },
        "statistics": stats.as_dict(),
        "errors": errors[:MAX_SUMMARY_ERRORS],
        "error_count": len(errors),
    }

    os.makedirs(logs_dir, exist_ok=True)
    filename = os.path.join(logs_dir, f"run_summary_{stats.started_at.strftime('%Y%m%d_%H%M%S')}.json")
    with open(filename, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)

    with open(os.path.join(logs_dir, "run_summary_latest.json"), "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)

    logging.info(f"📊 Run summary saved to {filename}")
    return filename
