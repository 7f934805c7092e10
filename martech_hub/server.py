"""FastAPI application: chat, knowledge search and platform proxies."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .auth import admin_login
from .config import env, log, CORS_ORIGINS, HUB_VERSION, KNOWLEDGE_FILE
from .errors import DocumentUnavailable, InputError, UpstreamError
from .knowledge import KnowledgeDocument, load_knowledge, search_knowledge
from .live_data import LiveSnapshot
from .pipeline import run
from .providers import (
    BrazeProvider, validate_braze_credentials,
    check_airtable_connection, fetch_airtable_records,
)


@lru_cache()
def get_knowledge() -> KnowledgeDocument:
    """Load the knowledge document once per process; failures are not cached."""
    return load_knowledge(KNOWLEDGE_FILE)


# ── Request bodies ──

_BODY_CONFIG = {"populate_by_name": True}


class ChatRequest(BaseModel):
    question: Optional[str] = None
    live_data: Optional[dict] = Field(default=None, alias="liveData")

    model_config = _BODY_CONFIG


class KnowledgeRequest(BaseModel):
    query: Optional[str] = None


class BrazeCredentials(BaseModel):
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    rest_endpoint: Optional[str] = Field(default=None, alias="restEndpoint")

    model_config = _BODY_CONFIG


class BrazeCampaignsRequest(BrazeCredentials):
    page: Optional[int] = None
    include_archived: Optional[bool] = Field(default=None, alias="includeArchived")
    sort_direction: Optional[str] = Field(default=None, alias="sortDirection")
    last_edit_gt: Optional[str] = Field(default=None, alias="lastEditTimeGt")
    last_edit_lt: Optional[str] = Field(default=None, alias="lastEditTimeLt")


class AirtableConfigRequest(BaseModel):
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    base_id: Optional[str] = Field(default=None, alias="baseId")
    table_name: Optional[str] = Field(default=None, alias="tableName")

    model_config = _BODY_CONFIG


class AirtableDataRequest(AirtableConfigRequest):
    max_records: Optional[int] = Field(default=None, alias="maxRecords")
    filter_formula: Optional[str] = Field(default=None, alias="filterFormula")
    view: Optional[str] = None


class AdminLoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


# ── App ──

app = FastAPI(title="MarTech Hub", version=HUB_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(InputError)
async def _input_error(request: Request, exc: InputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


@app.exception_handler(UpstreamError)
async def _upstream_error(request: Request, exc: UpstreamError) -> JSONResponse:
    content = {"success": False, "error": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(DocumentUnavailable)
async def _document_unavailable(request: Request, exc: DocumentUnavailable) -> JSONResponse:
    log.error("knowledge document unavailable: %s", exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "Knowledge base unavailable"})


@app.get("/health")
def health_check() -> dict:
    return {"status": "healthy", "version": HUB_VERSION}


@app.post("/api/chat")
def chat_endpoint(body: ChatRequest, doc: KnowledgeDocument = Depends(get_knowledge)) -> dict:
    if not body.question or not body.question.strip():
        raise InputError("Question is required")
    result = run(body.question, doc, LiveSnapshot.from_payload(body.live_data))
    return {
        "success": True,
        "answer": result["answer"],
        "model": result["model"],
        "source": result["source"],
    }


@app.post("/api/knowledge")
def knowledge_endpoint(body: KnowledgeRequest, doc: KnowledgeDocument = Depends(get_knowledge)) -> dict:
    if not body.query or not body.query.strip():
        raise InputError("Query is required")
    results = search_knowledge(body.query, doc)
    total = results.pop("total")
    return {"success": True, "query": body.query, "results": results, "totalResults": total}


@app.post("/api/config")
def braze_config_endpoint(body: BrazeCredentials) -> dict:
    endpoint = validate_braze_credentials(body.api_key, body.rest_endpoint)
    return {"success": True, "message": "Braze credentials validated successfully", "endpoint": endpoint}


@app.post("/api/braze-campaigns")
def braze_campaigns_endpoint(body: BrazeCampaignsRequest) -> dict:
    if not body.api_key or not body.rest_endpoint:
        raise InputError("Missing required fields: apiKey and restEndpoint are required")
    provider = BrazeProvider(body.api_key, body.rest_endpoint)
    data = provider.list_campaigns_page(
        page=body.page,
        include_archived=body.include_archived,
        sort_direction=body.sort_direction,
        last_edit_gt=body.last_edit_gt,
        last_edit_lt=body.last_edit_lt,
    )
    return {"success": True, **data}


@app.post("/api/airtable-config")
def airtable_config_endpoint(body: AirtableConfigRequest) -> dict:
    return check_airtable_connection(body.api_key, body.base_id, body.table_name or "")


@app.post("/api/airtable-data")
def airtable_data_endpoint(body: AirtableDataRequest) -> dict:
    records = fetch_airtable_records(
        body.api_key, body.base_id, body.table_name,
        max_records=body.max_records,
        filter_formula=body.filter_formula or "",
        view=body.view or "",
    )
    return {"success": True, "records": records, "count": len(records), "tableName": body.table_name}


@app.post("/api/admin-auth")
def admin_auth_endpoint(body: AdminLoginRequest):
    token = admin_login(body.username, body.password)
    if token is None:
        return JSONResponse(status_code=401, content={"success": False, "error": "Invalid credentials"})
    return {"success": True, "token": token}


def main():
    import uvicorn
    uvicorn.run(app, host=env("HUB_HOST", "127.0.0.1"), port=int(env("HUB_PORT", "8000")))


if __name__ == "__main__":
    main()
