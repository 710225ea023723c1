"""
Writer — persist captured app output and receipts.

Filesystem layout per run (next to the app):
    <publish_dir>/output.txt
    <publish_dir>/run_receipt.json
and per project:
    <artifacts_root>/<project>/matrix_receipt.json
"""
import json
import logging
from pathlib import Path
from typing import Optional

from publish_bench.core.paths import output_file_path
from publish_bench.core.process import RunOutcome
from publish_bench.io.schema import MatrixReceipt, RunReceipt

logger = logging.getLogger(__name__)


def persist_output(outcome: RunOutcome, app_path: Path) -> Optional[Path]:
    """
    Write the captured stdout bytes, unchanged, to ``output.txt`` beside the app.

    The file is created or truncated.  A write failure is logged and yields
    None; it never invalidates the run outcome.
    """
    path = output_file_path(app_path)
    try:
        with open(path, "wb") as f:
            f.write(outcome.stdout)
    except OSError as e:
        logger.error("Could not write app output to %s: %s", path, e)
        return None
    return path


def _write_json(model, path: Path) -> Optional[Path]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(
                model.model_dump(mode="json"),
                indent=2,
                sort_keys=True,
            )
            + "\n",
            encoding="utf-8",
        )
    except OSError as e:
        logger.error("Could not write receipt to %s: %s", path, e)
        return None
    return path


def write_run_receipt(receipt: RunReceipt, path: Path) -> Optional[Path]:
    """Write run_receipt.json; a write failure is logged and yields None."""
    return _write_json(receipt, path)


def write_matrix_receipt(receipt: MatrixReceipt, path: Path) -> Optional[Path]:
    """Write matrix_receipt.json; a write failure is logged and yields None."""
    return _write_json(receipt, path)
