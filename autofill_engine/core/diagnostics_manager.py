"""Diagnostics for classification and fill passes."""

import json
import logging
import os
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class StageInfo:
    """Timing and outcome of one stage of a pass."""
    name: str
    start_time: float
    end_time: Optional[float] = None
    success: Optional[bool] = None
    duration: Optional[float] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FieldDecision:
    """Why a field ended up where it did (filled, suggested, sensitive, skipped)."""
    field_index: int
    outcome: str
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0


class DiagnosticsManager:
    """Collects stage timings and per-field decisions for a run."""

    def __init__(self, run_id: str, enabled: bool = True, output_dir: Optional[str] = None):
        """Initialize the diagnostics manager.

        Args:
            run_id: A unique identifier for this run (e.g., timestamp).
            enabled: Whether diagnostics are recorded.
            output_dir: Base directory for saved results; nothing is written when None.
        """
        self.run_id = run_id
        self.enabled = enabled
        self.logger = logging.getLogger(__name__)
        self.stages: Dict[str, StageInfo] = {}
        self.decisions: List[FieldDecision] = []
        self.current_stage: Optional[str] = None
        self.start_time = time.time()
        self.run_output_dir = os.path.join(output_dir, run_id) if output_dir else None

        if self.enabled and self.run_output_dir:
            try:
                os.makedirs(self.run_output_dir, exist_ok=True)
                self.logger.info(f"Diagnostics for run '{self.run_id}' will be saved to {self.run_output_dir}")
            except OSError as e:
                self.logger.error(f"Failed to create diagnostics directory {self.run_output_dir}: {e}")
                self.run_output_dir = None

    def start_stage(self, stage_name: str) -> None:
        """Start tracking a stage.

        Args:
            stage_name: Name of the stage
        """
        if not self.enabled:
            return
        self.logger.info(f"Starting stage: {stage_name}")
        self.current_stage = stage_name
        self.stages[stage_name] = StageInfo(name=stage_name, start_time=time.time())

    def end_stage(self, success: bool, error: Optional[str] = None,
                  details: Optional[Dict[str, Any]] = None) -> None:
        """End tracking the current stage.

        Args:
            success: Whether the stage was successful
            error: Optional error message if the stage failed
            details: Optional details about the stage
        """
        if not self.enabled:
            return
        stage = self.stages.get(self.current_stage) if self.current_stage else None
        if stage is None:
            self.logger.warning("No current stage to end")
            return

        stage.end_time = time.time()
        stage.success = success
        stage.error = error
        stage.duration = stage.end_time - stage.start_time
        if details:
            stage.details.update(details)

        msg = f"Stage {stage.name} {'succeeded' if success else 'failed'}"
        if error:
            msg += f": {error}"
        msg += f" (took {stage.duration:.2f}s)"
        (self.logger.info if success else self.logger.error)(msg)
        self.current_stage = None

    @contextmanager
    def track_stage(self, stage_name: str):
        """Context manager for tracking a stage.

        Args:
            stage_name: Name of the stage
        """
        self.start_stage(stage_name)
        try:
            yield
            self.end_stage(True)
        except Exception as e:
            self.end_stage(False, error=str(e))
            raise

    def record_field_decision(self, field_index: int, outcome: str, reason: str = "",
                              details: Optional[Dict[str, Any]] = None) -> None:
        """Record the outcome for one field.

        Args:
            field_index: Scanner index of the field
            outcome: One of filled, suggested, sensitive, skipped, failed
            reason: Human-readable reason, e.g. "no stored answer for EMAIL"
            details: Extra data such as the classified type and score
        """
        if not self.enabled:
            return
        self.decisions.append(FieldDecision(field_index=field_index, outcome=outcome, reason=reason,
                                            details=dict(details or {}), timestamp=time.time()))
        if reason:
            self.logger.debug(f"Field {field_index}: {outcome} ({reason})")

    def decisions_for(self, field_index: int) -> List[FieldDecision]:
        return [d for d in self.decisions if d.field_index == field_index]

    def get_report(self) -> Dict[str, Any]:
        """Get the diagnostics report.

        Returns:
            Dict with stage timings, per-field decisions and outcome counts
        """
        return {
            "run_id": self.run_id,
            "start_time": self.start_time,
            "duration": time.time() - self.start_time,
            "stages": {name: asdict(stage) for name, stage in self.stages.items()},
            "decisions": [asdict(d) for d in self.decisions],
            "outcomes": dict(Counter(d.outcome for d in self.decisions)),
        }

    def save_intermediate_result(self, filename: str, data: Any) -> Optional[str]:
        """Save structured data as a JSON file within the run's directory.

        Args:
            filename: The name of the file (e.g., '01_classification.json').
            data: The object to serialize and save.

        Returns:
            The written path, or None when nothing was written
        """
        if not self.enabled or not self.run_output_dir:
            return None

        if not filename.endswith(".json"):
            filename += ".json"
        filepath = os.path.join(self.run_output_dir, filename)

        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=4, ensure_ascii=False)
        except (TypeError, OSError) as e:
            self.logger.error(f"Failed to save intermediate result to '{filepath}': {e}")
            return None
        self.logger.info(f"Saved intermediate result to '{filepath}'")
        return filepath
