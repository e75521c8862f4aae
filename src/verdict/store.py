"""Response store — where responses live between creation and deferred evaluation."""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from verdict.models import Response, Subject


@runtime_checkable
class ResponseStore(Protocol):
    """Protocol for looking up responses by id."""

    def add(self, response: Response) -> Response: ...

    def get(self, response_id: str) -> Response: ...


class InMemoryResponseStore:
    """Process-local store, used by tests and single-process deployments."""

    def __init__(self) -> None:
        self._responses: dict[str, Response] = {}
        self._subjects: dict[str, Subject] = {}
        self._lock = threading.Lock()

    def add(self, response: Response) -> Response:
        with self._lock:
            self._responses[response.id] = response
            if response.subject is not None:
                self._subjects.setdefault(response.subject.id, response.subject)
        return response

    def get(self, response_id: str) -> Response:
        with self._lock:
            try:
                return self._responses[response_id]
            except KeyError:
                raise KeyError(f"Response not found: {response_id}") from None

    def get_subject(self, subject_id: str) -> Subject:
        with self._lock:
            try:
                return self._subjects[subject_id]
            except KeyError:
                raise KeyError(f"Subject not found: {subject_id}") from None

    def responses_for(self, subject_id: str) -> list[Response]:
        with self._lock:
            return [
                r for r in self._responses.values()
                if r.subject is not None and r.subject.id == subject_id
            ]

    def __contains__(self, response_id: object) -> bool:
        return response_id in self._responses

    def __len__(self) -> int:
        return len(self._responses)
