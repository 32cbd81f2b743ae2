"""Calculator HTTP service.

Run with::

    uvicorn omnibot.services.calculator_app:app --port 3001
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnibot.calculator.evaluator import CalculationError, evaluate, format_number
from omnibot.config import settings
from omnibot.models.tools import CalculateRequest, CalculateResponse, ServiceError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="OmniBot Calculator API",
    description="Evaluates arithmetic expressions for the chat assistant",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/calculate", response_model=CalculateResponse)
async def calculate(request: CalculateRequest) -> Any:
    """Evaluate ``expression`` and return its formatted result."""
    expression = request.expression
    if not expression or not isinstance(expression, str):
        return JSONResponse(
            status_code=400,
            content=ServiceError(
                error="Expression is required and must be a string"
            ).model_dump(exclude_none=True),
        )

    try:
        value = evaluate(expression)
    except CalculationError as exc:
        logger.info("Calculation failed for %r: %s", expression, exc)
        return JSONResponse(
            status_code=400,
            content=ServiceError(
                error="Invalid mathematical expression",
                details=str(exc),
            ).model_dump(),
        )

    return CalculateResponse(expression=expression, result=format_number(value))


@app.get("/health")
async def health_check() -> dict[str, Any]:
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
