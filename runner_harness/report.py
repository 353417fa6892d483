from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger("runner_harness.report")


def write_report(path: Path | str, payload: Any) -> Path:
    """Persist ``payload`` as indented JSON, creating parent directories."""
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
        f.write("\n")
    LOGGER.info("Report written to %s", report_path)
    return report_path


__all__ = ["write_report"]
