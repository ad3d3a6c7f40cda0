# app/main.py - FastAPI app entry point

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.routers import contacts, health

logging.basicConfig(level=get_settings().log_level.upper())

app = FastAPI(
    title="contact-finder-api",
    description="Multi-provider contact discovery with merge, dedup and seniority ranking",
    version="0.1.0",
)


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(
    contacts.router,
    prefix="/api",
    tags=["contacts"],
)
