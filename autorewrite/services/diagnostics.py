import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DiagnosticEntry(BaseModel):
    operation: str
    error: str


class Diagnostics:
    """
    Collects failures of best-effort side effects (collection images,
    metafields, the collection stage as a whole). Critical operations are
    awaited directly and propagate; only best-effort ones go through here.
    """

    def __init__(self):
        self.entries: list[DiagnosticEntry] = []

    def record(self, operation: str, error: Exception | str) -> None:
        message = f"{type(error).__name__}: {error}" if isinstance(error, Exception) else str(error)
        self.entries.append(DiagnosticEntry(operation=operation, error=message))

    async def best_effort(self, operation: str, awaitable):
        try:
            return await awaitable
        except Exception as e:
            logger.warning("Best-effort operation failed (%s): %s", operation, e)
            self.record(operation, e)
            return None

    def extend(self, other: "Diagnostics") -> None:
        self.entries.extend(other.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def as_list(self) -> list[dict]:
        return [e.model_dump() for e in self.entries]
