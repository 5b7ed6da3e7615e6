"""Progress tracking across installer invocations."""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional


@dataclass
class ProgressStats:
    """Snapshot of overall installer progress."""
    percentage_complete: float
    action: str
    start_time: datetime
    elapsed: float  # seconds
    estimated_time_remaining: float  # seconds, 0 while unknown


class ProgressTracker:
    """Tracks the percentages reported by successive steps and estimates ETA.

    Steps report absolute percentages, so the estimate is a straight-line
    projection of the rate since the first report.
    """

    def __init__(self, update_callback: Optional[Callable[[ProgressStats], None]] = None):
        self.update_callback = update_callback
        self.reset()

    def update(self, percentage: float, action: str) -> ProgressStats:
        """Record a reported percentage and notify the callback."""
        current_time = datetime.now()
        if self.first_percentage is None:
            self.first_percentage = percentage
            self.start_time = current_time

        # Progress never moves backwards on screen
        self.percentage = max(self.percentage, min(100.0, float(percentage)))

        elapsed = (current_time - self.start_time).total_seconds()
        gained = self.percentage - self.first_percentage
        rate = gained / elapsed if elapsed > 0 else 0
        remaining = (100.0 - self.percentage) / rate if rate > 0 else 0

        stats = ProgressStats(
            percentage_complete=self.percentage,
            action=action,
            start_time=self.start_time,
            elapsed=elapsed,
            estimated_time_remaining=remaining,
        )
        if self.update_callback:
            self.update_callback(stats)
        return stats

    def complete(self, action: str = "Installation complete") -> ProgressStats:
        """Mark the installation as complete."""
        return self.update(100.0, action)

    def reset(self) -> None:
        """Reset the progress tracker."""
        self.percentage = 0.0
        self.first_percentage = None
        self.start_time = datetime.now()
