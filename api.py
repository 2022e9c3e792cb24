"""
api.py - FastAPI HTTP layer for statement XP reconciliation.

Endpoints:
  - GET  /health
  - POST /analyze        multipart upload of a statement PDF
  - POST /analyze/text   JSON body {"text": "..."} with already-extracted text

No parsing or reconciliation logic is implemented here.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import load_settings
from explain import format_report_json
from extract import extract_statement_text
from logging_config import get_logger, setup_logging
from models import CycleStartSource, FlightPrecedence
from pipeline import analyze_statement

logger = get_logger("statement-api")

app = FastAPI(
    title="Statement XP Reconciliation API",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# Allows local UI use from file:// or another local host/port.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AnalyzeTextRequest(BaseModel):
    text: str = Field(..., description="Full statement text, as extracted from the PDF.")
    cycle_start: Optional[CycleStartSource] = None
    flight_precedence: Optional[FlightPrecedence] = None


async def _save_upload(upload: UploadFile, destination: Path) -> None:
    """Save an UploadFile to disk."""
    try:
        with destination.open("wb") as out_file:
            while True:
                chunk = await upload.read(1024 * 1024)
                if not chunk:
                    break
                out_file.write(chunk)
    finally:
        await upload.close()


def _settings_for(cycle_start: Optional[str], flight_precedence: Optional[str]):
    try:
        return load_settings(
            {
                "cycle_start_source": cycle_start.strip().lower() if cycle_start else None,
                "flight_precedence": flight_precedence.strip().lower() if flight_precedence else None,
            }
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid analysis option: {exc}") from exc


@app.get("/health")
def health() -> dict[str, str]:
    """Service health check."""
    return {"status": "ok"}


@app.post("/analyze")
async def analyze_endpoint(
    statement: UploadFile = File(...),
    cycle_start: Optional[str] = Form(default=None),
    flight_precedence: Optional[str] = Form(default=None),
) -> JSONResponse:
    """Extract text from an uploaded statement PDF and return the JSON report."""
    if not statement.filename:
        raise HTTPException(status_code=400, detail="Statement file is required.")

    settings = _settings_for(cycle_start, flight_precedence)

    with tempfile.TemporaryDirectory(prefix="statement-recon-") as tmp_dir:
        statement_name = Path(statement.filename).name or "statement.pdf"
        statement_path = Path(tmp_dir) / statement_name

        try:
            await _save_upload(statement, statement_path)
            extracted = extract_statement_text(statement_path)
            report = analyze_statement(extracted.text, settings)
            payload: dict[str, Any] = format_report_json(report)
            payload["source"] = {"file": extracted.source, "pages": extracted.page_count}
            return JSONResponse(content=payload)
        except HTTPException:
            raise
        except FileNotFoundError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            logger.error(
                "api_analyze_error | error_type=%s | error=%s",
                type(exc).__name__,
                exc,
                exc_info=True,
            )
            raise HTTPException(
                status_code=500,
                detail="Unexpected server error while analyzing statement.",
            ) from exc


@app.post("/analyze/text")
def analyze_text_endpoint(request: AnalyzeTextRequest) -> dict[str, Any]:
    """Analyze already-extracted statement text."""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Statement text is required.")

    settings = _settings_for(
        request.cycle_start.value if request.cycle_start else None,
        request.flight_precedence.value if request.flight_precedence else None,
    )
    try:
        report = analyze_statement(request.text, settings)
    except Exception as exc:
        logger.error(
            "api_analyze_text_error | error_type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Unexpected server error while analyzing statement text.",
        ) from exc
    return format_report_json(report)


if __name__ == "__main__":
    setup_logging()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("api:app", host="0.0.0.0", port=port, reload=False)
