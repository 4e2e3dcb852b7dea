from __future__ import annotations

from typing import List, Optional


class SchedulerError(Exception):
    """Base class for errors raised by the webhook scheduler."""


class JobValidationError(SchedulerError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid job specification")


class JobNotFoundError(SchedulerError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Webhook {job_id} not found")


class JobStateError(SchedulerError):
    """The job exists but is not in a state that allows the operation."""

    def __init__(self, job_id: str, status: Optional[str], action: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Cannot {action} webhook {job_id} while it is {status}")


class ConfirmationError(SchedulerError):
    def __init__(self, expected: str):
        self.expected = expected
        super().__init__(f'Confirmation text must be exactly "{expected}"')


class StorageError(SchedulerError):
    """Wraps failures of the persistence layer."""
