"""Header counts for a request in one pass over its events."""
from __future__ import annotations

from dataclasses import dataclass, field

from tlk.trace.model import DBQuery, DBTransaction, LogMessage, PubSubPublish, Request


@dataclass
class RequestSummary:
    num_calls: int = 0
    num_queries: int = 0
    num_publishes: int = 0
    logs: list[LogMessage] = field(default_factory=list)

    @property
    def num_logs(self) -> int:
        return len(self.logs)

    def labels(self) -> dict[str, str]:
        """Pluralized header labels, e.g. ``{"calls": "1 API Call"}``."""
        return {
            "calls": f"{self.num_calls} API Call{'' if self.num_calls == 1 else 's'}",
            "queries": f"{self.num_queries} DB Quer{'y' if self.num_queries == 1 else 'ies'}",
            "publishes": f"{self.num_publishes} Publish{'' if self.num_publishes == 1 else 'es'}",
            "logs": f"{self.num_logs} Log Line{'' if self.num_logs == 1 else 's'}",
        }


def summarize_request(req: Request) -> RequestSummary:
    """Count calls, queries, and publishes, and collect log lines in order.

    Calls are counted from the request's children, so a call that never
    returned still counts. Queries inside transactions count individually.
    """
    summary = RequestSummary(num_calls=len(req.children))
    for ev in req.events:
        if isinstance(ev, DBQuery):
            summary.num_queries += 1
        elif isinstance(ev, DBTransaction):
            summary.num_queries += len(ev.queries)
        elif isinstance(ev, LogMessage):
            summary.logs.append(ev)
        elif isinstance(ev, PubSubPublish):
            summary.num_publishes += 1
    return summary
