from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from src.config import settings
from src.routers import (
    accounts,
    auth_routes,
    custom_values,
    location_links,
)

app = FastAPI(title="Marketing Ops Console", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid4())
    )
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

app.include_router(auth_routes.router)
app.include_router(accounts.router)
app.include_router(custom_values.router)
app.include_router(location_links.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "marketing-ops-console"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
