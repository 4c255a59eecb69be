"""familyvine: relationship graph service for family-tree apps."""

from __future__ import annotations

import logging
import os
import time
from collections import deque
from contextlib import asynccontextmanager
from threading import Lock

import psutil
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from familyvine.graph.config import GraphConfig
from familyvine.graph.errors import GraphError
from familyvine.graph.store import GraphStore, InMemoryGraphStore

logger = logging.getLogger("familyvine")

PORT = int(os.environ.get("FV_PORT", "9820"))


# ---------------------------------------------------------------------------
# RateCounter: thread-safe sliding-window request counter
# ---------------------------------------------------------------------------

SPARKLINE_BUCKETS = 60


class RateCounter:
    """Count events in a sliding window and expose per-second rate + history."""

    def __init__(self, window: float = 60.0) -> None:
        self._window = window
        self._lock = Lock()
        self._timestamps: deque[float] = deque()
        self._sparkline: deque[float] = deque(maxlen=SPARKLINE_BUCKETS)

    def record(self) -> None:
        now = time.monotonic()
        with self._lock:
            self._timestamps.append(now)

    def _prune(self, now: float) -> None:
        cutoff = now - self._window
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()

    def rate(self) -> float:
        now = time.monotonic()
        with self._lock:
            self._prune(now)
            count = len(self._timestamps)
        return count / self._window if self._window else 0.0

    def snapshot_sparkline(self) -> None:
        self._sparkline.append(round(self.rate(), 2))

    def sparkline_history(self) -> list[float]:
        return list(self._sparkline)


request_counter = RateCounter(window=60.0)
_start_time: float = 0.0


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

async def open_store(config: GraphConfig) -> GraphStore:
    """Build the configured GraphStore backend."""
    if config.store_backend == "memory":
        return InMemoryGraphStore()
    if config.store_backend == "postgres":
        from familyvine.db import ensure_schema, init_pool
        from familyvine.graph.pg_store import PostgresGraphStore

        pool = await init_pool()
        await ensure_schema(pool)
        logger.info("Database pool initialized")
        return PostgresGraphStore(pool)
    raise ValueError(f"Unknown FV_STORE_BACKEND: {config.store_backend!r}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _start_time
    _start_time = time.time()

    config = GraphConfig()
    app.state.graph_config = config
    app.state.store = await open_store(config)
    logger.info("Graph store ready: %s", config.to_dict())

    yield

    await app.state.store.close()
    if config.store_backend == "postgres":
        from familyvine.db import close_pool

        await close_pool()
        logger.info("Database pool closed")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="familyvine",
    version="0.1.0",
    description="Relationship graph engine: reciprocal labels, relationship panels and tree projection",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request counting middleware and error mapping
# ---------------------------------------------------------------------------

@app.middleware("http")
async def count_requests(request: Request, call_next):
    request_counter.record()
    return await call_next(request)


@app.exception_handler(GraphError)
async def graph_error_handler(request: Request, exc: GraphError):
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------

from familyvine.graph.routes import router as graph_router  # noqa: E402

app.include_router(graph_router)


# ---------------------------------------------------------------------------
# Core routes
# ---------------------------------------------------------------------------

@app.get("/health")
async def health(request: Request):
    """Health check: store backend and reachability."""
    store: GraphStore = request.app.state.store
    result: dict = {"status": "ok", "backend": store.backend}
    try:
        if store.backend == "postgres":
            from familyvine.db import get_pool

            db_ok = await get_pool().fetchval("SELECT 1")
            result["store"] = "connected" if db_ok == 1 else "unexpected"
        else:
            await store.stats()
            result["store"] = "connected"
    except RuntimeError:
        result["store"] = "pool_not_initialized"
    except Exception as exc:
        result["status"] = "degraded"
        result["store"] = f"error: {exc}"
    return result


@app.get("/metrics")
async def metrics(request: Request):
    """Stats endpoint for server-monitor dashboard."""
    try:
        store: GraphStore = request.app.state.store
        now = time.time()
        process = psutil.Process(os.getpid())
        mem = process.memory_info()

        request_counter.snapshot_sparkline()

        # -- System metrics ---------------------------------------------------

        uptime = now - _start_time if _start_time else 0.0
        rps = request_counter.rate()

        result: list[dict] = [
            {
                "key": "uptime",
                "label": "Uptime",
                "value": round(uptime),
                "unit": "seconds",
            },
            {
                "key": "rps",
                "label": "Requests / sec",
                "value": round(rps, 2),
                "unit": "req/s",
                "warn_above": 200,
                "sparkline_history": request_counter.sparkline_history(),
            },
            {
                "key": "memory_rss",
                "label": "Memory (RSS)",
                "value": round(mem.rss / 1_048_576, 1),
                "unit": "MB",
                "warn_above": 512,
            },
            {
                "key": "cpu_percent",
                "label": "CPU usage",
                "value": process.cpu_percent(interval=0),
                "unit": "%",
                "warn_above": 90,
            },
        ]

        # -- Graph metrics ----------------------------------------------------

        stats = await store.stats()
        result.extend([
            {"key": "store_backend", "label": "Store backend", "value": store.backend, "unit": ""},
            {"key": "total_members", "label": "Members", "value": stats["members"], "unit": "members"},
            {"key": "total_relationships", "label": "Relationships", "value": stats["relationships"], "unit": "edges"},
            {"key": "total_unions", "label": "Unions", "value": stats["unions"], "unit": "unions"},
            {"key": "total_union_children", "label": "Union children", "value": stats["union_children"], "unit": "links"},
        ])
        if stats["members"]:
            result.append({
                "key": "edges_per_member",
                "label": "Edges / member",
                "value": round(stats["relationships"] / stats["members"], 2),
                "unit": "avg",
            })

        return {"metrics": result}

    except Exception as exc:
        logger.exception("Error fetching metrics")
        return JSONResponse(
            status_code=500,
            content={"metrics": [], "error": f"Store error: {exc}"},
        )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

def run() -> None:
    uvicorn.run("familyvine.app:app", host="127.0.0.1", port=PORT, reload=False)


if __name__ == "__main__":
    run()
