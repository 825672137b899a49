"""
Observability: process logging, per-path request metrics, /metrics route.
"""

import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict

from fastapi import FastAPI, Request


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record):
        payload = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        # Request log lines carry their fields under ``extra={'request': ...}``
        request = getattr(record, 'request', None)
        if isinstance(request, dict):
            payload['request'] = request
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload)


@dataclass
class PathStats:
    requests: int = 0
    errors: int = 0
    latency_total_ms: float = 0.0

    def as_dict(self) -> Dict:
        return {
            'requests': self.requests,
            'errors': self.errors,
            'avg_latency_ms': round(self.latency_total_ms / self.requests, 2) if self.requests else 0.0,
        }


class ApiMetrics:
    """Request counts, error counts and mean latency, keyed by URL path."""

    def __init__(self):
        self.paths: Dict[str, PathStats] = defaultdict(PathStats)

    def record(self, path: str, latency_ms: float, status_code: int) -> None:
        stats = self.paths[path]
        stats.requests += 1
        stats.latency_total_ms += latency_ms
        if status_code >= 400:
            stats.errors += 1

    def snapshot(self) -> Dict:
        return {
            'totals': {
                'total_requests': sum(s.requests for s in self.paths.values()),
                'total_errors': sum(s.errors for s in self.paths.values()),
            },
            'per_endpoint': {path: s.as_dict() for path, s in self.paths.items()},
        }


def setup_logging(level='INFO', json_output=False):
    """Configure the root logger once for the whole process."""
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s')
        )
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))


def setup_observability(app: FastAPI, metrics: ApiMetrics) -> FastAPI:
    """Time every request, log it, and expose the counters at /metrics."""
    logger = logging.getLogger('karnataka_rainfall.api')

    @app.middleware('http')
    async def track_requests(request: Request, call_next):
        start = time.perf_counter()
        # Exceptions escaping the app are answered with a 500 by Starlette.
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = (time.perf_counter() - start) * 1000
            metrics.record(request.url.path, latency_ms, status_code)
            logger.info(
                '%s %s -> %d (%.0fms)',
                request.method,
                request.url.path,
                status_code,
                latency_ms,
                extra={'request': {
                    'method': request.method,
                    'path': request.url.path,
                    'status': status_code,
                    'latency_ms': round(latency_ms, 2),
                }},
            )

    @app.get('/metrics')
    def metrics_endpoint():
        return metrics.snapshot()

    return app
