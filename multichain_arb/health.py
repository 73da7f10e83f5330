"""
Liveness and metrics endpoints for the scanner process.

GET /health  - per-network loop status
GET /metrics - Prometheus exposition
"""

import time
from typing import Dict, Optional

from fastapi import FastAPI, Response

from .metrics import ScannerMetrics
from .scanner import NetworkScanner
from .utils import mask_url


def _scanner_status(scanner: NetworkScanner, now: float) -> Dict:
    last = scanner.last_iteration_at
    return {
        "iterations": scanner.iterations,
        "last_result": scanner.last_result.value if scanner.last_result else None,
        "seconds_since_last_scan": round(now - last, 3) if last is not None else None,
        "endpoint": mask_url(scanner.rotator.endpoint),
        "endpoint_index": scanner.rotator.index,
        "rotations": scanner.rotator.rotations,
        "strikes_attempted": scanner.executor.attempted,
        "strikes_succeeded": scanner.executor.succeeded,
    }


def create_app(
    scanners: Dict[str, NetworkScanner], metrics: Optional[ScannerMetrics] = None
) -> FastAPI:
    """Build the FastAPI app over the running scanners."""
    app = FastAPI(title="Multi-chain Arbitrage Scanner")
    metrics = metrics or ScannerMetrics()

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        now = time.time()
        return {
            "status": "healthy" if scanners else "idle",
            "networks": {
                name: _scanner_status(scanner, now) for name, scanner in scanners.items()
            },
        }

    @app.get("/metrics")
    async def prometheus_metrics():
        return Response(content=metrics.render(), media_type=metrics.content_type)

    return app
