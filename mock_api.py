from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from typing import Optional
from models import (
    AnalyzeRequest,
    AnalyzeResponse,
    IdentitiesPage,
    SubscriptionsPage,
)
from mock_data import MOCK_IDENTITIES, MOCK_INDEXES, REDACTION_THRESHOLD, mock_interactions
import math

API_VERSION = "v1.3"

app = FastAPI(
    title="Mock PYLON API",
    description="Mock of the PYLON index, identity and analysis endpoints used by the usage reporter",
    version="1.0.0"
)


def _require_auth(authorization: Optional[str]) -> str:
    if not authorization or ":" not in authorization:
        raise HTTPException(status_code=401, detail="Authorization header must be <username>:<api_key>")
    return authorization.split(":", 1)[1]


@app.exception_handler(HTTPException)
async def pylon_error(request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.get("/")
def root():
    return {
        "message": "Mock PYLON API",
        "version": "1.0.0",
        "endpoints": {
            "indexes": f"/{API_VERSION}/pylon/get",
            "identities": f"/{API_VERSION}/account/identity",
            "analyze": f"/{API_VERSION}/pylon/analyze"
        }
    }


@app.get(f"/{API_VERSION}/pylon/get", response_model=SubscriptionsPage)
def list_indexes(
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=1000, description="Number of items per page"),
    authorization: Optional[str] = Header(None)
):
    _require_auth(authorization)
    total = len(MOCK_INDEXES)
    total_pages = math.ceil(total / per_page)

    start_idx = (page - 1) * per_page
    end_idx = start_idx + per_page

    return SubscriptionsPage(
        count=total,
        page=page,
        pages=total_pages,
        per_page=per_page,
        subscriptions=MOCK_INDEXES[start_idx:end_idx]
    )


@app.get(f"/{API_VERSION}/account/identity", response_model=IdentitiesPage)
def list_identities(
    label: Optional[str] = Query(None, description="Filter by identity label"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(25, ge=1, le=1000, description="Number of items per page"),
    authorization: Optional[str] = Header(None)
):
    _require_auth(authorization)
    identities = [i for i in MOCK_IDENTITIES if not label or i["label"] == label]

    start_idx = (page - 1) * per_page
    end_idx = start_idx + per_page

    return IdentitiesPage(count=len(identities), identities=identities[start_idx:end_idx])


@app.post(f"/{API_VERSION}/pylon/analyze", response_model=AnalyzeResponse)
def analyze(body: AnalyzeRequest, authorization: Optional[str] = Header(None)):
    api_key = _require_auth(authorization)

    index = next((i for i in MOCK_INDEXES if i["id"] == body.id), None)
    if index is None:
        raise HTTPException(status_code=404, detail=f"Index {body.id} not found")

    owner = next(i for i in MOCK_IDENTITIES if i["id"] == index["identity_id"])
    if owner["api_key"] != api_key:
        raise HTTPException(status_code=403, detail="Index is not owned by this identity")

    interactions = mock_interactions(index, body.start)
    unique_authors = interactions // 10

    return AnalyzeResponse(
        interactions=interactions,
        unique_authors=unique_authors,
        analysis={
            "analysis_type": body.parameters.analysis_type,
            "parameters": body.parameters.parameters,
            "redacted": unique_authors < REDACTION_THRESHOLD,
            "results": []
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
