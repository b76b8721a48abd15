"""
Progress and result reporting for a document analysis.

The orchestrator only writes to a sink; it never reads anything back.
ConsoleProgressSink drives a tqdm bar on the terminal, RecordingSink keeps
every event for library callers and tests.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Protocol

import click
from tqdm import tqdm

from .models import DocumentTotals, PageResult, RegionCounts


def clamp_percent(pct: float) -> int:
    return int(max(0, min(100, round(pct))))


class ProgressSink(Protocol):
    def set_status(self, text: str) -> None: ...

    def set_progress(self, pct: float) -> None: ...

    def set_counts(self, counts: RegionCounts) -> None: ...

    def show_page(self, page: PageResult) -> None: ...

    def set_final_totals(self, totals: DocumentTotals) -> None: ...

    def fail(self, message: str) -> None: ...


@dataclass
class RecordingSink:
    """Collects every event in order as (kind, value) pairs."""
    events: list[tuple[str, Any]] = field(default_factory=list)

    def set_status(self, text: str) -> None:
        self.events.append(("status", text))

    def set_progress(self, pct: float) -> None:
        self.events.append(("progress", clamp_percent(pct)))

    def set_counts(self, counts: RegionCounts) -> None:
        self.events.append(("counts", replace(counts)))

    def show_page(self, page: PageResult) -> None:
        self.events.append(("page", page))

    def set_final_totals(self, totals: DocumentTotals) -> None:
        self.events.append(("totals", replace(totals)))

    def fail(self, message: str) -> None:
        self.events.append(("error", message))

    def of_kind(self, kind: str) -> list:
        return [value for k, value in self.events if k == kind]

    @property
    def statuses(self) -> list[str]:
        return self.of_kind("status")

    @property
    def progress(self) -> list[int]:
        return self.of_kind("progress")

    @property
    def final_totals(self) -> Optional[DocumentTotals]:
        totals = self.of_kind("totals")
        return totals[-1] if totals else None


class ConsoleProgressSink:
    """
    Terminal sink: a percentage bar with running counts as postfix.

    Args:
        label: Prefix for status lines (usually the document name)
        show_text: Print recovered text for each recoverable candidate
        disable_bar: Print status lines only (e.g. when not on a TTY)
    """

    def __init__(self, label: str = "", show_text: bool = False, disable_bar: bool = False):
        self.label = label
        self.show_text = show_text
        self._bar = tqdm(total=100, unit="%", disable=disable_bar, leave=False)

    def _write(self, message: str) -> None:
        tqdm.write(f"[{self.label}] {message}" if self.label else message)

    def set_status(self, text: str) -> None:
        self._bar.set_description_str(text)

    def set_progress(self, pct: float) -> None:
        self._bar.n = clamp_percent(pct)
        self._bar.refresh()

    def set_counts(self, counts: RegionCounts) -> None:
        self._bar.set_postfix(
            annotations=counts.annotations,
            vectors=counts.vectors,
            images=counts.images,
        )

    def show_page(self, page: PageResult) -> None:
        if not self.show_text:
            return
        for index, candidate in enumerate(page.candidates):
            if candidate.recoverable:
                self._write(
                    f"page {page.page_num} #{index} ({candidate.kind.value}): "
                    f"{candidate.recovered_text}"
                )

    def set_final_totals(self, totals: DocumentTotals) -> None:
        self._bar.close()
        summary = (
            f"Redactions: {totals.total_redactions} · "
            f"Recoverable: {totals.recoverable_count} · "
            f"Recovery: {totals.recovery_percent}%"
        )
        colour = "red" if totals.recoverable_count else "green"
        self._write(click.style(summary, fg=colour))

    def fail(self, message: str) -> None:
        self._bar.close()
        self._write(click.style(message, fg="red"))
