from dataclasses import dataclass, field

from schooladmin.extensions import db
from schooladmin.errors import AppError


@dataclass
class BatchResult:
    """Outcome of a best-effort batch: successes are kept, failures listed."""

    assigned_count: int = 0
    errors: list = field(default_factory=list)
    outcomes: list = field(default_factory=list)

    def to_dict(self):
        return {
            "assigned_count": self.assigned_count,
            "errors": self.errors,
            "outcomes": self.outcomes,
        }


def run_batch(items, operation, describe=None):
    """
    Apply ``operation`` to every item inside its own savepoint.

    Business failures (AppError) roll back that item only and are recorded
    in ``errors``; the caller commits once at the end.
    """
    result = BatchResult()
    for item in items:
        try:
            with db.session.begin_nested():
                outcome = operation(item)
        except AppError as exc:
            label = f"{describe(item)}: " if describe else ""
            result.errors.append(f"{label}{exc.message}")
            continue
        result.assigned_count += 1
        if outcome is not None:
            result.outcomes.append(outcome)
    return result
