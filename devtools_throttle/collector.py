import logging
import math
import statistics
import time
from dataclasses import asdict, dataclass
from typing import Optional

from devtools_throttle.errors import UntimeableExchange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LatencySample:
    url: str
    resource_type: str
    latency_ms: float
    observed_at: int  # epoch milliseconds

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class LatencySummary:
    count: int
    minimum: Optional[float] = None
    median: Optional[float] = None
    p95: Optional[float] = None
    maximum: Optional[float] = None

    def to_dict(self):
        return asdict(self)


class SampleLog(object):
    """Samples in the order their exchanges completed. Append only."""

    def __init__(self, session=None, callback=None):
        self._samples = []
        self._session = session
        self._callback = callback

    def __len__(self):
        return len(self._samples)

    def __iter__(self):
        return iter(list(self._samples))

    def __getitem__(self, index):
        return self._samples[index]

    def __repr__(self):
        return '<SampleLog {} samples>'.format(len(self._samples))

    def snapshot(self):
        return tuple(self._samples)

    def detach(self):
        """Stop recording. Samples already taken stay."""
        if self._session is not None:
            self._session.remove_listener('requestfinished', self._callback)
            self._session = None

    def _append(self, sample):
        self._samples.append(sample)


def time_to_first_byte(exchange):
    request_start, response_start = exchange.timing
    if request_start is None or response_start is None:
        raise UntimeableExchange('{} has no timing'.format(exchange.url))
    latency = response_start - request_start
    if latency < 0:
        raise UntimeableExchange('{} has negative latency {}'.format(exchange.url, latency))
    return latency


def attach(session, domain_filter):
    """Record the time to first byte of every exchange whose URL contains
    `domain_filter`. Returns straight away; the log fills as exchanges
    complete, until the session closes or the log is detached.
    """
    def on_finished(exchange):
        if domain_filter not in exchange.url:
            return
        try:
            latency = time_to_first_byte(exchange)
        except UntimeableExchange as exc:
            logger.debug('[COLLECTOR] skipped: %s', exc)
            return
        log._append(LatencySample(
            url=exchange.url,
            resource_type=exchange.resource_type,
            latency_ms=latency,
            observed_at=int(time.time() * 1000),
        ))

    log = SampleLog(session, on_finished)
    session.on('requestfinished', on_finished)
    return log


def percentile(values, fraction):
    # Nearest rank
    ordered = sorted(values)
    rank = max(1, math.ceil(fraction * len(ordered)))
    return ordered[rank - 1]


def summarize(samples):
    latencies = [s.latency_ms for s in samples]
    if not latencies:
        return LatencySummary(count=0)
    return LatencySummary(
        count=len(latencies),
        minimum=min(latencies),
        median=statistics.median(latencies),
        p95=percentile(latencies, 0.95),
        maximum=max(latencies),
    )
