# app/routers/contacts.py - contact discovery endpoints

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from app.config import get_settings
from app.contracts.contacts import FindContactsSelectedRequest, ProviderContactsOutput, ProviderContactsRequest
from app.routers._responses import error_response
from app.services.contact_research import stream_research_contacts
from app.services.find_contacts_selected import execute_find_contacts_selected
from app.services.provider_operations import (
    execute_find_contacts_apify,
    execute_find_contacts_apollo,
    execute_find_contacts_hunter,
)
from app.utils.exceptions import ProviderNotConfiguredError

logger = logging.getLogger(__name__)

router = APIRouter()


def _contacts_response(result: ProviderContactsOutput) -> JSONResponse:
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.post("/find-contacts-selected")
async def find_contacts_selected(request: Request):
    try:
        body = await request.json()
        payload = FindContactsSelectedRequest.model_validate(body)
        result = await execute_find_contacts_selected(request_data=payload, base_url=str(request.base_url))
    except Exception:  # noqa: BLE001
        logger.exception("Find contacts selected failed")
        return error_response("Failed to find contacts", 500)
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.post("/find-contacts-apollo")
async def find_contacts_apollo(payload: ProviderContactsRequest):
    # A key supplied by the user in settings wins over the server's key.
    api_key = payload.api_key or get_settings().apollo_api_key
    if not api_key:
        raise ProviderNotConfiguredError("Apollo API key required. Please add your API key in settings.", status_code=400)
    try:
        result = await execute_find_contacts_apollo(companies=payload.companies, context=payload.context, api_key=api_key)
    except HTTPException:
        raise
    except Exception:  # noqa: BLE001
        logger.exception("Find contacts Apollo failed")
        return error_response("Failed to find contacts via Apollo", 500)
    return _contacts_response(result)


@router.post("/find-contacts-hunter")
async def find_contacts_hunter(payload: ProviderContactsRequest):
    api_key = get_settings().hunter_api_key
    if not api_key:
        raise ProviderNotConfiguredError("Hunter API not configured")
    try:
        result = await execute_find_contacts_hunter(companies=payload.companies, context=payload.context, api_key=api_key)
    except HTTPException:
        raise
    except Exception:  # noqa: BLE001
        logger.exception("Find contacts Hunter failed")
        return error_response("Failed to find contacts via Hunter", 500)
    return _contacts_response(result)


@router.post("/find-contacts-apify")
async def find_contacts_apify(payload: ProviderContactsRequest):
    api_key = get_settings().apify_api_key
    if not api_key:
        raise ProviderNotConfiguredError("Apify API not configured. Set APIFY_API_KEY in .env")
    try:
        result = await execute_find_contacts_apify(companies=payload.companies, context=payload.context, api_key=api_key)
    except HTTPException:
        raise
    except Exception:  # noqa: BLE001
        logger.exception("Find contacts Apify failed")
        return error_response("Failed to find contacts via Apify", 500)
    return _contacts_response(result)


@router.post("/research-contacts")
async def research_contacts(payload: ProviderContactsRequest):
    settings = get_settings()
    if not settings.google_api_key:
        raise ProviderNotConfiguredError("Google API not configured")
    if not payload.companies:
        return JSONResponse(content={"results": [], "summary": {"companiesProcessed": 0, "contactsFound": 0}})

    return StreamingResponse(
        stream_research_contacts(
            companies=payload.companies,
            context=payload.context,
            api_key=settings.google_api_key,
            model=settings.gemini_model,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
