"""
HTTP routes for the sitemap documents.

GET /sitemap.xml            sitemap index
GET /sitemap-main.xml       static + state pages
GET /sitemap-{N}.xml        city chunk N (N >= 2)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import SiteConfig
from .datasource import CitySource
from .documents import build_document, build_index_document, parse_sitemap_id
from .errors import InvalidSitemapId
from .render import today_stamp

logger = logging.getLogger(__name__)

XML_HEADERS = {"Cache-Control": "public, max-age=3600"}

router = APIRouter(include_in_schema=False)


def get_config(request: Request) -> SiteConfig:
    return request.app.state.config


def get_source(request: Request) -> CitySource:
    return request.app.state.source


def xml_response(content: str) -> Response:
    return Response(content=content, media_type="application/xml", headers=XML_HEADERS)


@router.get("/sitemap.xml")
def sitemap_index(config: SiteConfig = Depends(get_config), source: CitySource = Depends(get_source)):
    try:
        return xml_response(build_index_document(config, source, today_stamp()))
    except Exception:
        logger.exception("Error generating sitemap.xml")
        return PlainTextResponse("Error generating sitemap", status_code=500)


@router.get("/sitemap-{sitemap_id}.xml")
def sitemap_file(sitemap_id: str, config: SiteConfig = Depends(get_config), source: CitySource = Depends(get_source)):
    try:
        parsed = parse_sitemap_id(sitemap_id)
    except InvalidSitemapId:
        return PlainTextResponse("Invalid sitemap number", status_code=404)

    try:
        return xml_response(build_document(config, source, parsed, today_stamp()))
    except Exception:
        logger.exception("Error generating sitemap-%s.xml", sitemap_id)
        return PlainTextResponse("Error generating sitemap", status_code=500)


async def plain_http_error(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    if exc.status_code == 404 and request.url.path.startswith("/sitemap"):
        return PlainTextResponse("Invalid sitemap number", status_code=404)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def create_app(config: SiteConfig, source: CitySource) -> FastAPI:
    app = FastAPI(title="city-sitemaps", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config
    app.state.source = source
    app.add_exception_handler(StarletteHTTPException, plain_http_error)
    app.include_router(router)
    return app
