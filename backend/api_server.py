import os
import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from assign_utils import DEFAULT_BATCH_SIZE, DEFAULT_ITERATIONS, DEFAULT_TEAM_SIZE
from assignment_service import generate_assignment
from records import (
    ClassificationRecord,
    FeedbackRecord,
    InputError,
    RelationRecord,
    parse_records,
)
from team_assign import AssignmentConfig

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger("api_server")

DATASET_ROOT = os.path.join(os.path.dirname(__file__), "..", "data")
DEFAULT_FEEDBACK = os.path.join(DATASET_ROOT, "student_feedback.tsv")
DEFAULT_CLASSIFICATIONS = os.path.join(DATASET_ROOT, "student_classifications.tsv")
DEFAULT_RELATIONS = os.path.join(DATASET_ROOT, "classification_relations.tsv")

app = FastAPI(title="Team Assignment Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # For development; refine for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AssignRequest(BaseModel):
    # Inline rows take precedence over the file paths
    classifications: Optional[List[dict]] = None
    feedback: Optional[List[dict]] = None
    relations: Optional[List[dict]] = None
    classifications_path: Optional[str] = DEFAULT_CLASSIFICATIONS
    feedback_path: Optional[str] = DEFAULT_FEEDBACK
    relations_path: Optional[str] = DEFAULT_RELATIONS
    team_size: int = Field(DEFAULT_TEAM_SIZE, ge=1)
    iterations: int = Field(DEFAULT_ITERATIONS, ge=1)
    seed: Optional[int] = None
    workers: int = Field(1, ge=1)
    batch_size: int = Field(DEFAULT_BATCH_SIZE, ge=1)
    time_limit: Optional[float] = Field(None, gt=0)
    phrases_path: Optional[str] = None
    notify: bool = False
    project: str = "the next project"


class TeamOut(BaseModel):
    rank: int
    team_name: str
    members: List[str]
    team_size: int
    score: int
    solo: bool


class AssignResponse(BaseModel):
    found: bool
    score: Optional[int]
    teams: List[TeamOut]
    warnings: List[str]


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/assign", response_model=AssignResponse)
async def assign_endpoint(request: AssignRequest):
    config = AssignmentConfig(
        feedback=request.feedback_path,
        classifications=request.classifications_path,
        relations=request.relations_path,
        team_size=request.team_size,
        iterations=request.iterations,
        seed=request.seed,
        workers=request.workers,
        batch_size=request.batch_size,
        time_limit=request.time_limit,
        phrases=request.phrases_path,
    )
    try:
        records = None
        if request.classifications is not None:
            records = (
                parse_records(request.classifications, ClassificationRecord, source="classifications"),
                parse_records(request.feedback or [], FeedbackRecord, source="feedback"),
                parse_records(request.relations or [], RelationRecord, source="relations"),
            )
        results = generate_assignment(config, records, notify=request.notify, project=request.project)
        return AssignResponse(**results)
    except InputError as exc:
        logger.warning(f"Rejected input: {exc}")
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception as exc:
        logger.exception("Assignment failed")
        raise HTTPException(status_code=500, detail=str(exc))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
