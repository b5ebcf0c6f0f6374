"""
AI Aggregator Web Server
========================
FastAPI backend exposing the comparison pipeline over REST.

Run with:
    python server.py
    # or: uvicorn server:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from ai_aggregator.errors import NoProvidersAvailable, ValidationError
from ai_aggregator.orchestrator import Orchestrator
from ai_aggregator.providers import ProviderFactory
from ai_aggregator.registry import build_default_registry

# ------------------------------------------------------------------ #
#  Logging
# ------------------------------------------------------------------ #
LOG_FILE = Path(os.getenv("AI_AGGREGATOR_LOG_FILE", "ai_aggregator.log"))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(LOG_FILE, encoding="utf-8"),
    ],
)
logger = logging.getLogger("ai_aggregator.server")
logger.info("AI Aggregator server starting; log file: %s", LOG_FILE)

DEFAULT_TIMEOUT_MS = int(os.getenv("AI_AGGREGATOR_TIMEOUT_MS", "30000"))

# ------------------------------------------------------------------ #
#  FastAPI app
# ------------------------------------------------------------------ #
app = FastAPI(title="AI Aggregator", version="1.0.0")


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    """Build the adapter map once, on first use."""
    registry = build_default_registry()
    adapters = ProviderFactory.create_configured(registry)
    return Orchestrator(adapters, registry)


# ------------------------------------------------------------------ #
#  Pydantic request models
# ------------------------------------------------------------------ #

class CompareRequest(BaseModel):
    prompt: str = ""
    providers: list[str] = []
    temperature: float | None = None
    max_tokens: int | None = None
    timeout_ms: int | None = None


# ------------------------------------------------------------------ #
#  API endpoints
# ------------------------------------------------------------------ #

@app.get("/api/health")
async def health(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return {
        "status": "ok",
        "providers": [p.value for p in orchestrator.adapters],
    }


@app.get("/api/models")
async def list_models(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Return configured providers with their model and sovereignty metadata."""
    models = orchestrator.get_available_models()
    return {"models": models, "count": len(models)}


@app.post("/api/compare")
async def compare(
    req: CompareRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Query the requested providers and return the scored comparison."""
    options = {
        "temperature": req.temperature,
        "max_tokens": req.max_tokens,
        "timeout_ms": req.timeout_ms if req.timeout_ms is not None else DEFAULT_TIMEOUT_MS,
    }
    logger.info("=== NEW COMPARISON === prompt=%r providers=%s", req.prompt[:80], req.providers)

    try:
        report = await orchestrator.compare(req.prompt, req.providers, options)
    except NoProvidersAvailable as exc:
        logger.warning("Comparison rejected: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc))
    except ValidationError as exc:
        logger.info("Invalid comparison request: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info(
        "Comparison %s complete: %d/%d successful in %d ms",
        report.run_id,
        report.summary.successful_responses,
        report.summary.total_responses,
        report.processing_time_ms,
    )
    return report.to_dict()


# ------------------------------------------------------------------ #
#  Run
# ------------------------------------------------------------------ #
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=True)
