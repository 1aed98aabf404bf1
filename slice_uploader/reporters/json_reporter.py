"""JSON reporter for structured output and GitHub Actions integration.

Writes the run summary produced by RunResult.to_dict() to a file and,
optionally, exposes the headline numbers as GitHub Actions outputs.
"""

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from slice_uploader.config import UploaderSettings
from slice_uploader.models import FileResult, UploadJob
from slice_uploader.reporters.base import Reporter

if TYPE_CHECKING:
    from slice_uploader.runner import RunResult


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
        github_output: If True, write to GITHUB_OUTPUT for Actions
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        github_output: bool = False,
    ):
        self.output_path = output_path
        self.github_output = github_output

    def on_run_start(self, file_count: int, settings: UploaderSettings) -> None:
        pass

    def on_file_skipped(self, path: str, reason: str) -> None:
        pass

    def on_file_start(self, job: UploadJob) -> None:
        pass

    def on_attempt_failed(self, job: UploadJob, attempt: int, reason: str) -> None:
        pass

    def on_file_complete(self, result: FileResult) -> None:
        pass

    def on_run_complete(self, result: "RunResult") -> dict:
        """Generate and output the JSON summary.

        Returns:
            The generated JSON data as a dictionary
        """
        output = result.to_dict()

        if self.output_path:
            self._write_to_file(output)

        if self.github_output:
            self._write_github_output(output)

        return output

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)

    def _write_github_output(self, output: dict) -> None:
        github_output_file = os.environ.get("GITHUB_OUTPUT")
        if not github_output_file:
            return

        summary = output["summary"]
        with open(github_output_file, "a", encoding="utf-8") as f:
            f.write(f"all_succeeded={str(summary['all_succeeded']).lower()}\n")
            f.write(f"total_files={summary['total_files']}\n")
            f.write(f"succeeded_files={summary['succeeded']}\n")
            f.write(f"failed_files={summary['failed']}\n")
            f.write(f"bytes_per_second={summary['bytes_per_second']:.0f}\n")

            f.write("results<<EOF\n")
            f.write(json.dumps(output))
            f.write("\nEOF\n")
