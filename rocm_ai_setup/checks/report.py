"""Check results, console tables, and local JSON result files."""

import json
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from prettytable import PrettyTable

from ..constants import Constants
from ..logger import log, SEPARATOR_LINE


@dataclass
class CheckResult:
    """Outcome of one check."""
    name: str
    status: str
    duration: float = 0.0
    detail: str = ""

    @property
    def passed(self) -> bool:
        return self.status in (Constants.CHECK_STATUS_PASS, Constants.CHECK_STATUS_WARN,
                               Constants.CHECK_STATUS_SKIP)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Report:
    """Collects check results and renders them."""

    def __init__(self, title: str):
        self.title = title
        self.results: List[CheckResult] = []

    def add(self, result: CheckResult) -> CheckResult:
        self.results.append(result)
        return result

    def extend(self, results: List[CheckResult]):
        self.results.extend(results)

    @property
    def failed(self) -> List[CheckResult]:
        return [r for r in self.results if not r.passed]

    @property
    def success(self) -> bool:
        return not self.failed

    def summary(self) -> Dict[str, int]:
        counts = {status: 0 for status in (Constants.CHECK_STATUS_PASS, Constants.CHECK_STATUS_WARN,
                                           Constants.CHECK_STATUS_FAIL, Constants.CHECK_STATUS_SKIP)}
        for result in self.results:
            counts[result.status] = counts.get(result.status, 0) + 1
        counts['total'] = len(self.results)
        return counts

    def table(self) -> PrettyTable:
        table = PrettyTable()
        table.title = self.title
        table.field_names = ["Check", "Status", "Time", "Detail"]
        table.align["Check"] = "l"
        table.align["Detail"] = "l"
        for result in self.results:
            execution = time.strftime("%H:%M:%S", time.gmtime(result.duration))
            table.add_row([result.name, result.status, execution, result.detail])
        return table

    def pprint(self):
        """Log the result table and the overall verdict."""
        log.info(f"\n{self.table()}")
        counts = self.summary()
        log.info(SEPARATOR_LINE)
        log.info(
            f"Total: {counts['total']}  Passed: {counts['PASS']}  Warnings: {counts['WARN']}  "
            f"Failed: {counts['FAIL']}  Skipped: {counts['SKIP']}"
        )
        if self.success:
            log.info("All checks passed ✅")
        else:
            log.error(f"{len(self.failed)} check(s) failed: {', '.join(r.name for r in self.failed)}")
        log.info(SEPARATOR_LINE)

    def save_json(self, output_dir: str,
                  system_info: Optional[Dict[str, Any]] = None,
                  metadata: Optional[Dict[str, Any]] = None,
                  timestamp: Optional[str] = None) -> Path:
        """Save results to a timestamped JSON file.

        Returns:
            Path of the written file
        """
        timestamp = timestamp or time.strftime("%Y%m%d_%H%M%S")
        out_dir = Path(output_dir).expanduser()
        out_dir.mkdir(parents=True, exist_ok=True)

        slug = self.title.lower().replace(" ", "_")
        path = out_dir / f"{slug}_{timestamp}.json"
        data = {
            'title': self.title,
            'execution_time': timestamp,
            'summary': self.summary(),
            'results': [r.to_dict() for r in self.results],
            'system_info': system_info or {},
            'metadata': metadata or {},
        }
        with open(path, 'w') as f:
            json.dump(data, f, indent=2, default=str)
        log.info(f"Results saved to {path}")
        return path
