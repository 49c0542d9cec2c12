# backend/qmsdb/main.py
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .apps.workflow.errors import WorkflowError
from .apps.workflow.http import workflow_error_handler

from .apps.documents.router_compliance import router as compliance_router
from .apps.documents.router import router as documents_router
from .apps.audits.router import router as audits_router
from .apps.revisions.router import router as revisions_router


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:4173",
    ]


app = FastAPI(title="QMS Workflow API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(WorkflowError, workflow_error_handler)


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "QMS workflow backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


# Compliance routes first: "/documents/compliance/..." must not be read as a document id.
app.include_router(compliance_router)
app.include_router(documents_router)
app.include_router(audits_router)
app.include_router(revisions_router)
