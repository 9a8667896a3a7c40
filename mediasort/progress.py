"""Progress tracking context for mediasort runs."""

from typing import Optional
from rich.progress import Progress, TaskID


class ProgressContext:
    """Encapsulates progress tracking state; a no-op when no bar is attached."""

    def __init__(self, progress: Optional[Progress] = None, task: Optional[TaskID] = None):
        self.progress = progress
        self.task = task

    @property
    def is_active(self) -> bool:
        return self.progress is not None and self.task is not None

    def update(self, description: str) -> None:
        if self.is_active:
            self.progress.update(self.task, description=description)

    def advance(self, steps: int = 1) -> None:
        if self.is_active:
            self.progress.advance(self.task, steps)
