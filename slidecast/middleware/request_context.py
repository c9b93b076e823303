from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from uuid import uuid4

from slidecast.schemas.envelope import ResponseMeta


@dataclass
class RequestContext:
    request_id: str
    start_time: float


def create_request_context() -> RequestContext:
    return RequestContext(request_id=str(uuid4()), start_time=perf_counter())


def build_meta(context: RequestContext) -> ResponseMeta:
    processing_time_ms = int((perf_counter() - context.start_time) * 1000)
    return ResponseMeta(
        processing_time_ms=processing_time_ms,
        timestamp=datetime.now(timezone.utc),
    )
