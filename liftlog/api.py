from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import configure_loguru
from liftlog.catalog import ExercisePatternRepository, InMemoryPatternRepository, collect_candidates, prepare_pattern_update


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_loguru()
    if getattr(app.state, "repository", None) is None:
        app.state.repository = InMemoryPatternRepository()
    logger.info("Exercise suggestion API started")
    try:
        yield
    finally:
        logger.info("Exercise suggestion API stopped")


app = FastAPI(title="liftlog exercise suggestions", lifespan=lifespan)


class TrackExerciseRequest(BaseModel):
    user: str = Field(min_length=1)
    exercise_name: Any = Field(default=None, alias="exerciseName")
    exercise_data: dict[str, Any] | None = Field(default=None, alias="exerciseData")
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def get_repository(request: Request) -> ExercisePatternRepository:
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        repository = InMemoryPatternRepository()
        request.app.state.repository = repository
    return repository


@app.get("/api/v1/exercises/all/", response_model=None)
async def all_exercises(
    user: str = Query(..., min_length=1),
    repository: ExercisePatternRepository = Depends(get_repository),
) -> dict[str, Any] | JSONResponse:
    try:
        return await collect_candidates(repository, user)
    except Exception as exc:  # noqa: BLE001
        logger.exception(f"Error getting exercise candidates for user={user}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Failed to get exercises"})


@app.post("/api/v1/exercises/track/", response_model=None)
async def track_exercise(
    body: TrackExerciseRequest,
    repository: ExercisePatternRepository = Depends(get_repository),
) -> dict[str, bool] | JSONResponse:
    try:
        name, update = prepare_pattern_update(body.exercise_name, body.exercise_data)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid exercise data: {exc.error_count()} error(s)")
    except ValueError:
        raise HTTPException(status_code=400, detail="Exercise name is required")

    try:
        await repository.upsert_pattern(body.user, name, update)
    except Exception as exc:  # noqa: BLE001
        logger.exception(f"Error tracking exercise pattern {name!r} for user={body.user}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Failed to track exercise pattern"})
    return {"success": True}
