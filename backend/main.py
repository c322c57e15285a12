from typing import Optional
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from config import logger, check_api_keys_on_startup, CACHE_CONFIG
from exceptions import LegislativeDataException
from middleware.context import RequestContextMiddleware, get_request_id
from models.query import BillQuery
from services.bills import BillService
from services.container import build_bill_service

app = FastAPI(title="Legislative Bills Aggregator")

@app.on_event("startup")
async def startup_event():
    check_api_keys_on_startup()

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
    expose_headers=["ETag", "X-Cache", "X-Data-Sources", "X-Request-ID"],
)

_bill_service: Optional[BillService] = None

def get_bill_service() -> BillService:
    global _bill_service
    if _bill_service is None:
        _bill_service = build_bill_service()
    return _bill_service

@app.on_event("shutdown")
async def shutdown_event():
    global _bill_service
    if _bill_service is not None:
        await _bill_service.close()
        _bill_service = None

@app.exception_handler(LegislativeDataException)
async def legislative_error_handler(request: Request, exc: LegislativeDataException):
    logger.warning(
        "Request failed with %s: %s",
        exc.classification, exc.message,
        extra={"request_id": get_request_id(), "details": exc.details}
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error while serving %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Failed to fetch bills", "details": {}},
    )

@app.get("/")
async def health_check():
    return {"status": "ok", "message": "Legislative bills aggregator is running."}

@app.get("/bills")
async def list_bills(
    source: Optional[str] = Query(None),
    zip_code: Optional[str] = Query(None, alias="zipCode"),
    representative_id: Optional[str] = Query(None, alias="representativeId"),
    topic: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    if_none_match: Optional[str] = Header(None),
    service: BillService = Depends(get_bill_service),
):
    # Parameters arrive as raw strings so every problem surfaces as a 400 validation_error.
    query = BillQuery.from_params(
        source=source,
        zip_code=zip_code,
        representative_id=representative_id,
        topic=topic,
        status=status,
        limit=limit,
        offset=offset,
    )
    result = await service.get_bills(query, if_none_match)

    headers = {
        "ETag": result.etag,
        "Cache-Control": CACHE_CONFIG.cache_control,
        "CDN-Cache-Control": CACHE_CONFIG.cdn_cache_control,
        "X-Cache": result.cache_status,
        "X-Data-Sources": ",".join(result.sources),
    }
    if result.not_modified:
        return Response(status_code=304, headers=headers)
    return Response(content=result.body, media_type="application/json", headers=headers)

@app.get("/sources/health")
async def sources_health(service: BillService = Depends(get_bill_service)):
    return {"sources": service.source_health()}
