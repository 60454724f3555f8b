# data_insights/api/main.py
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from data_insights import __version__
from data_insights.agents.qa_agent import QAConfigurationError, QuestionAnsweringAgent
from data_insights.agents.source_agent import (
    EmptyInputError, MalformedSourceError, RecordSourceAgent, RecordSourceError, UnreadableSourceError
)
from data_insights.config import get_config
from data_insights.pipeline import InsightPipeline
from data_insights.types import InsightResult, RawRow

logger = logging.getLogger(__name__)

config = get_config()

app = FastAPI(
    title="Data Insights API",
    description="Column statistics, correlation matrices and Q&A for uploaded CSV files",
    version=__version__,
    docs_url="/docs" if config.deployment.ENABLE_DOCS else None
)

if config.deployment.ENABLE_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@dataclass
class DatasetSession:
    """An ingested dataset and its conversation"""
    dataset_id: str
    file_name: str
    records: List[RawRow]
    columns: List[str]
    insights: InsightResult
    created_at: datetime = field(default_factory=datetime.now)
    qa_agent: Optional[QuestionAnsweringAgent] = None


# In-process registry, lives as long as the server
datasets: Dict[str, DatasetSession] = {}

pipeline = InsightPipeline(config)
source_agent = RecordSourceAgent.from_config(config)


class ColumnStatsModel(BaseModel):
    column: str
    count: int
    missing: int
    isNumeric: bool
    mean: Optional[float] = None
    stdDev: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    unique: Optional[int] = None


class CorrelationMatrixModel(BaseModel):
    columns: List[str]
    matrix: List[List[Optional[float]]]


class DatasetResponse(BaseModel):
    dataset_id: str
    file_name: str
    row_count: int
    column_count: int
    columns: List[str]
    stats: List[ColumnStatsModel]
    correlation_matrix: CorrelationMatrixModel
    preview: List[Dict[str, Any]] = Field(default_factory=list)


class QuestionRequest(BaseModel):
    question: str = Field(..., min_length=1)


def get_qa_agent(session: DatasetSession) -> QuestionAnsweringAgent:
    if session.qa_agent is None:
        session.qa_agent = QuestionAnsweringAgent.from_config(config)
    return session.qa_agent


def _get_session(dataset_id: str) -> DatasetSession:
    session = datasets.get(dataset_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Dataset not found")
    return session


def _to_response(session: DatasetSession) -> DatasetResponse:
    result = session.insights.to_dict()
    return DatasetResponse(
        dataset_id=session.dataset_id,
        file_name=session.file_name,
        row_count=len(session.records),
        column_count=len(session.columns),
        columns=session.columns,
        stats=result["stats"],
        correlation_matrix=result["matrix"],
        preview=session.records[:config.deployment.PREVIEW_ROWS]
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/datasets", response_model=DatasetResponse)
async def upload_dataset(file: UploadFile = File(...)):
    """Ingest a CSV upload and compute its insights"""
    
    max_size = config.deployment.MAX_REQUEST_SIZE
    
    try:
        # Read at most one byte past the limit
        content = await file.read(max_size + 1)
    except Exception as e:
        logger.error(f"Failed to read upload {file.filename}: {str(e)}")
        raise HTTPException(status_code=400, detail="Failed to read the file.")
    
    if len(content) > max_size:
        logger.warning(f"Upload {file.filename} exceeds {max_size} bytes")
        raise HTTPException(
            status_code=400,
            detail=f"Failed to read the file. File too large: limit is {max_size} bytes"
        )
    
    try:
        records = await run_in_threadpool(source_agent.parse_bytes, content, file.filename)
    except UnreadableSourceError as e:
        logger.warning(f"Unreadable upload {file.filename}: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Failed to read the file. {str(e)}")
    except (EmptyInputError, MalformedSourceError) as e:
        logger.warning(f"Could not parse upload {file.filename}: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Error parsing CSV: {str(e)}")
    except RecordSourceError as e:
        raise HTTPException(status_code=400, detail=f"Error parsing CSV: {str(e)}")
    
    analysis = await run_in_threadpool(pipeline.analyze_records, records)
    
    session = DatasetSession(
        dataset_id=uuid.uuid4().hex,
        file_name=file.filename or "upload.csv",
        records=records,
        columns=analysis["columns"],
        insights=analysis["insights"]
    )
    datasets[session.dataset_id] = session
    
    logger.info(
        f"Dataset {session.dataset_id} ingested from {session.file_name}: "
        f"{len(records)} rows, {len(session.columns)} columns"
    )
    
    return _to_response(session)


@app.get("/datasets/{dataset_id}/insights", response_model=DatasetResponse)
async def get_insights(dataset_id: str):
    """Return the insights computed for a dataset"""
    return _to_response(_get_session(dataset_id))


@app.delete("/datasets/{dataset_id}")
async def delete_dataset(dataset_id: str):
    """Drop a dataset and its conversation"""
    _get_session(dataset_id)
    del datasets[dataset_id]
    return {"status": "deleted", "dataset_id": dataset_id}


@app.post("/datasets/{dataset_id}/questions")
async def ask_question(dataset_id: str, request: QuestionRequest):
    """Stream an answer to a question about the dataset"""
    session = _get_session(dataset_id)
    
    try:
        agent = get_qa_agent(session)
        # Fail before streaming starts when the client cannot be built
        agent.client
    except QAConfigurationError as e:
        logger.error(f"Question answering unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail=str(e))
    
    def answer_stream():
        try:
            yield from agent.stream_answer(request.question, session.records)
        except Exception as e:
            logger.error(f"Answer streaming failed for {dataset_id}: {str(e)}")
            yield f"\n\nError: {str(e)}"
    
    return StreamingResponse(answer_stream(), media_type="text/plain; charset=utf-8")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Data Insights API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    uvicorn.run(
        "data_insights.api.main:app",
        host=config.deployment.DEFAULT_HOST,
        port=config.deployment.DEFAULT_PORT,
        workers=config.deployment.WORKERS,
        log_level=config.logging_level.lower()
    )
