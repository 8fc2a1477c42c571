#!/usr/bin/env python3
"""Qimen engine HTTP shell (FastAPI).

- Plate calculation: sexagenary pillars, solar terms, ju cycle, Ground/Heaven layers
- Reading: pattern detection, subject strength, outcome probability
- Reference: Swiss Ephemeris solar-term crossings
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

MODULE_DIR = Path(__file__).resolve().parent
REPO_ROOT = MODULE_DIR.parent
# Existing process env wins; package .env before repo .env.
load_dotenv(dotenv_path=MODULE_DIR / ".env", override=False)
load_dotenv(dotenv_path=REPO_ROOT / ".env", override=False)

import logging
import os
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Literal, Optional

# Support both `uvicorn qimen_engine.main:app` (repo root) and
# `uvicorn main:app` (package directory) execution contexts.
if __package__ is None or __package__ == "":
    sys.path.append(str(REPO_ROOT))

import pytz
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, model_validator
from timezonefinder import TimezoneFinder

from qimen_engine.cache_manager import cache, make_cache_key
from qimen_engine.context import get_engine_context
from qimen_engine.engine import ENGINE_SIGNATURE, ENGINE_VERSION, build_qimen_plate, build_qimen_reading
from qimen_engine.engine_integrity import validate_engine_integrity
from qimen_engine.errors import InputValidationError
from qimen_engine.sexagenary import SUPPORTED_YEAR_RANGE, CalendarMoment
from qimen_engine.solar_terms import list_solar_terms
from qimen_engine.subject_evaluator import classify_intent, describe_subjects
from qimen_engine.swe_config import initialize_swe_context

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s - %(message)s",
)

logger = logging.getLogger("qimen_api")

TIMEZONE_FINDER = TimezoneFinder()


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


DEFAULT_TZ_OFFSET = _env_float("QIMEN_DEFAULT_TZ_OFFSET", 8.0)
BATCH_LIMIT = max(1, _env_int("QIMEN_BATCH_LIMIT", 24))

SWE_CONTEXT_STATUS = initialize_swe_context(logger)
ENGINE_CONTEXT = get_engine_context()
validate_engine_integrity()

app = FastAPI(title="Qimen Engine")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# ------------------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------------------
class MomentRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    year: int = Field(..., ge=SUPPORTED_YEAR_RANGE[0], le=SUPPORTED_YEAR_RANGE[1], description="Civil year")
    month: int = Field(..., ge=1, le=12, description="Civil month")
    day: int = Field(..., ge=1, le=31, description="Civil day")
    hour: int = Field(0, ge=0, le=23, description="Local hour")
    minute: int = Field(0, ge=0, le=59, description="Local minute")
    tz_offset: Optional[float] = Field(None, ge=-14, le=14, description="UTC offset hours")
    lat: Optional[float] = Field(None, ge=-90, le=90, description="Latitude")
    lon: Optional[float] = Field(None, ge=-180, le=180, description="Longitude")
    local_mean_time: bool = Field(False, description="Apply longitude local mean time to day/hour pillars")

    @model_validator(mode="after")
    def validate_location(self) -> "MomentRequest":
        if (self.lat is None) != (self.lon is None):
            raise ValueError("lat and lon must be provided together.")
        if self.local_mean_time and self.lon is None:
            raise ValueError("local_mean_time requires lon.")
        return self


class ProfileModel(BaseModel):
    model_config = ConfigDict(extra="ignore")
    gender: Optional[Literal["male", "female"]] = Field(None, description="Querent gender")
    birth_date: Optional[date] = Field(None, description="Secondary reference date (YYYY-MM-DD)")


class AnalyzeRequest(MomentRequest):
    question: str = Field(..., description="Question text (1-200 characters)")
    profile: Optional[ProfileModel] = Field(None, description="Optional subject profile")


class BatchCalculateRequest(BaseModel):
    moments: list[MomentRequest] = Field(..., description="Moments to calculate")


# ------------------------------------------------------------------------------
# Moment helpers
# ------------------------------------------------------------------------------
@lru_cache(maxsize=4096)
def _timezone_name_for_coordinates(lat: float, lon: float) -> Optional[str]:
    return TIMEZONE_FINDER.timezone_at(lat=lat, lng=lon)


@lru_cache(maxsize=4096)
def _timezone_utc_offset_hours(tz_name: str, year: int, month: int, day: int, hour: int) -> float:
    tz = pytz.timezone(tz_name)
    sample_dt = tz.localize(datetime(year, month, day, hour))
    return float(sample_dt.utcoffset().total_seconds() / 3600.0)


def resolve_timezone_offset(request: MomentRequest) -> float:
    """Explicit offset first, then coordinates, then the configured default."""
    if request.tz_offset is not None:
        return float(request.tz_offset)
    if request.lat is None or request.lon is None:
        return DEFAULT_TZ_OFFSET

    tz_name = _timezone_name_for_coordinates(float(request.lat), float(request.lon))
    if not tz_name:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Unable to determine timezone from coordinates lat={request.lat}, lon={request.lon}. "
                "Please provide tz_offset as UTC offset hours."
            ),
        )
    try:
        tz_offset = _timezone_utc_offset_hours(str(tz_name), request.year, request.month, request.day, request.hour)
    except Exception as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Failed to resolve timezone offset for timezone '{tz_name}'. Please provide tz_offset.",
        ) from exc

    logger.debug("Timezone: %s, tz_offset=%s", tz_name, tz_offset)
    return tz_offset


def moment_from_request(request: MomentRequest) -> CalendarMoment:
    return CalendarMoment(
        year=request.year,
        month=request.month,
        day=request.day,
        hour=request.hour,
        minute=request.minute,
        utc_offset=resolve_timezone_offset(request),
        longitude=request.lon if request.local_mean_time else None,
    )


# ------------------------------------------------------------------------------
# API endpoints: Health Check
# ------------------------------------------------------------------------------
@app.get("/health")
def health():
    return {
        "status": "ok",
        "engine_version": ENGINE_VERSION,
        "engine_signature": ENGINE_SIGNATURE,
        "scoring_profile": ENGINE_CONTEXT.profile_source,
        "pattern_rules": len(ENGINE_CONTEXT.pattern_rules),
        "strict_invariants": ENGINE_CONTEXT.strict_invariants,
        "cache": cache.stats(),
        "ephemeris_path": SWE_CONTEXT_STATUS.get("ephemeris_path"),
        "ephemeris_backend": SWE_CONTEXT_STATUS.get("ephemeris_backend"),
        "ephemeris_verified": SWE_CONTEXT_STATUS.get("ephemeris_verified", False),
        "solcross_available": SWE_CONTEXT_STATUS.get("solcross_available", False),
    }


# ------------------------------------------------------------------------------
# API endpoints: Qimen
# ------------------------------------------------------------------------------
@app.post("/qimen/calculate")
def calculate_plate(request: MomentRequest):
    moment = moment_from_request(request)
    try:
        return build_qimen_plate(moment, ENGINE_CONTEXT)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Plate calculation failed for %s", moment.to_dict())
        raise HTTPException(status_code=500, detail=f"Plate calculation failed: {str(e)}")


@app.post("/qimen/analyze")
def analyze_question(request: AnalyzeRequest):
    """
    Full reading for one moment and question.

    Request Body:
    {
        "year": 2024, "month": 6, "day": 21, "hour": 12, "minute": 0,
        "tz_offset": 8.0,
        "question": "career opportunity",
        "profile": {"gender": "male", "birth_date": "1990-05-01"}
    }
    """
    moment = moment_from_request(request)
    profile = request.profile.model_dump() if request.profile else None
    cache_key = make_cache_key(
        "analyze",
        {"moment": moment.to_dict(), "question": request.question.strip(), "profile": profile},
    )

    try:
        reading, cached = cache.get_or_compute(
            cache_key,
            lambda: build_qimen_reading(moment, request.question, profile, ENGINE_CONTEXT),
        )
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Reading failed for %s", moment.to_dict())
        raise HTTPException(status_code=500, detail=f"Reading failed: {str(e)}")

    if cached:
        logger.debug("Reading served from cache: %s", cache_key)
    return {**reading, "cache": {"hit": cached, "key": cache_key}}


@app.post("/qimen/batch-calculate")
def batch_calculate(request: BatchCalculateRequest):
    if not request.moments:
        raise HTTPException(status_code=400, detail="At least one moment is required.")
    if len(request.moments) > BATCH_LIMIT:
        raise HTTPException(status_code=400, detail=f"At most {BATCH_LIMIT} moments per batch.")

    results: list[dict[str, Any]] = []
    for index, item in enumerate(request.moments):
        try:
            moment = moment_from_request(item)
            results.append({"index": index, "status": "ok", "result": build_qimen_plate(moment, ENGINE_CONTEXT)})
        except HTTPException as e:
            results.append({"index": index, "status": "invalid", "error": str(e.detail)})
        except InputValidationError as e:
            results.append({"index": index, "status": "invalid", "error": str(e)})
    return {
        "status": "ok",
        "total": len(results),
        "succeeded": sum(1 for r in results if r["status"] == "ok"),
        "results": results,
    }


@app.get("/qimen/solar-terms")
def get_solar_terms(
    year: int = Query(..., ge=SUPPORTED_YEAR_RANGE[0], le=SUPPORTED_YEAR_RANGE[1]),
    reference: int = Query(0),
):
    return {"year": year, "terms": list_solar_terms(year, reference=bool(reference))}


@app.get("/qimen/subjects")
def get_subjects(
    question: str = Query(..., min_length=1, max_length=200),
    gender: Optional[Literal["male", "female"]] = Query(None),
):
    intent = classify_intent(question, ENGINE_CONTEXT.intent_keywords)
    return {
        "question": question,
        "intent": intent,
        "gender": gender,
        "subjects": describe_subjects(intent, gender, ENGINE_CONTEXT.subject_registry),
    }
