"""JSON dashboard for issuedeck.

A small local FastAPI server over one project's ``DataController``. A
module-level ``_controller`` is set at startup (or by test fixtures) and
injected via ``Depends(_get_controller)``. While serving, the controller
watches the database so edits made from the CLI show up without a restart.

Usage:
    issuedeck dashboard                    # Opens browser at localhost:8377
    issuedeck dashboard --port 9000        # Custom port
    issuedeck dashboard --no-browser       # Skip auto-open
"""

from __future__ import annotations

import json
import logging
import webbrowser
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse
    from starlette.requests import Request

from issuedeck.awards import all_awards
from issuedeck.core import DataController
from issuedeck.filters import RECENT_ISSUES_ID, Filter, SearchState, SortType, Status

DEFAULT_PORT = 8377

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state: set by main() or test fixtures
# ---------------------------------------------------------------------------

_controller: DataController | None = None


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
    )


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """Parse and validate a JSON object body, returning 400 on failure."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _get_controller() -> DataController:
    from fastapi import HTTPException

    if _controller is None:
        raise HTTPException(status_code=500, detail="Controller not initialized")
    return _controller


def _resolve_filter(controller: DataController, value: str) -> Filter | JSONResponse:
    """Map the ``filter`` query param ("all", "recent" or a tag id) to a Filter."""
    if value in ("", "all"):
        return Filter.all_issues()
    if value in ("recent", str(RECENT_ISSUES_ID)):
        return Filter.recent_issues()
    try:
        return Filter.for_tag(controller.get_tag(value))
    except KeyError:
        return _error_response(f"Unknown filter: {value}", "NOT_FOUND", 404, {"param": "filter", "value": value})


def _build_search(controller: Any, params: Any) -> SearchState | JSONResponse:
    tokens = []
    for tag_id in params.getlist("token"):
        try:
            tokens.append(controller.get_tag(tag_id))
        except KeyError:
            return _error_response(f"Unknown tag token: {tag_id}", "NOT_FOUND", 404, {"param": "token", "value": tag_id})

    raw_priority = params.get("priority", "")
    priority = -1
    if raw_priority != "":
        try:
            priority = int(raw_priority)
        except ValueError:
            priority = -2
        if not -1 <= priority <= 2:
            return _error_response(
                f'Invalid value for priority: "{raw_priority}". Must be -1..2.',
                "VALIDATION_ERROR",
                400,
            )
    try:
        status = Status(params.get("status", Status.ALL.value))
        sort_field = SortType(params.get("sort", SortType.CREATION_DATE.value))
    except ValueError as e:
        return _error_response(str(e), "VALIDATION_ERROR", 400)
    order = params.get("order", "desc")
    if order not in ("asc", "desc"):
        return _error_response(f'Invalid value for order: "{order}". Must be asc or desc.', "VALIDATION_ERROR", 400)

    return SearchState(
        free_text=params.get("q", ""),
        tag_tokens=tokens,
        advanced_filter_enabled=priority >= 0 or status != Status.ALL,
        priority_filter=priority,
        status_filter=status,
        sort_field=sort_field,
        sort_descending=order == "desc",
        rank_matches=params.get("rank", "") in ("1", "true"),
    )


def _create_router() -> Any:
    """Build the APIRouter containing all endpoints."""
    from fastapi import APIRouter, Depends, Request
    from fastapi.responses import JSONResponse

    # Expose Request in module globals so PEP 563 deferred annotations resolve
    globals()["Request"] = Request

    router = APIRouter()

    # Handlers are async so controller access stays on the event loop thread.

    @router.get("/filters")
    async def api_filters(controller: DataController = Depends(_get_controller)) -> JSONResponse:
        return JSONResponse(
            {
                "smart": [f.to_dict() for f in controller.smart_filters()],
                "tags": [f.to_dict() for f in controller.tag_filters()],
            }
        )

    @router.get("/issues")
    async def api_issues(request: Request, controller: DataController = Depends(_get_controller)) -> JSONResponse:
        selected = _resolve_filter(controller, request.query_params.get("filter", "all"))
        if isinstance(selected, JSONResponse):
            return selected
        search = _build_search(controller, request.query_params)
        if isinstance(search, JSONResponse):
            return search
        return JSONResponse([i.to_dict() for i in controller.issues_for_filter(selected, search)])

    @router.post("/issues", status_code=201)
    async def api_create_issue(request: Request, controller: DataController = Depends(_get_controller)) -> JSONResponse:
        """Create a new issue, optionally attached to ``tag_id``."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        priority = body.get("priority")
        if priority is not None and (isinstance(priority, bool) or not isinstance(priority, int)):
            return _error_response("priority must be an integer between 0 and 2", "INVALID_PRIORITY", 400)
        tag = None
        if body.get("tag_id"):
            try:
                tag = controller.get_tag(body["tag_id"])
            except KeyError:
                return _error_response(f"Tag not found: {body['tag_id']}", "NOT_FOUND", 404)
        issue = controller.create_issue(tag)
        try:
            controller.update_issue(
                issue,
                title=body.get("title"),
                content=body.get("content"),
                priority=priority,
                immediate=True,
            )
        except ValueError as e:
            controller.delete(issue)
            return _error_response(str(e), "VALIDATION_ERROR", 400)
        return JSONResponse(issue.to_dict(), status_code=201)

    @router.get("/issue/{issue_id}")
    async def api_issue_detail(issue_id: str, controller: DataController = Depends(_get_controller)) -> JSONResponse:
        try:
            issue = controller.get_issue(issue_id)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "NOT_FOUND", 404)
        data: dict[str, Any] = dict(issue.to_dict())
        data["missing_tags"] = [t.to_dict() for t in controller.missing_tags(issue)]
        return JSONResponse(data)

    @router.get("/tags")
    async def api_tags(controller: DataController = Depends(_get_controller)) -> JSONResponse:
        return JSONResponse([t.to_dict() for t in controller.all_tags()])

    @router.post("/tags", status_code=201)
    async def api_create_tag(request: Request, controller: DataController = Depends(_get_controller)) -> JSONResponse:
        from issuedeck.db_tags import TagQuotaExceeded

        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        try:
            tag = controller.create_tag(body.get("name"))
        except TagQuotaExceeded as e:
            return _error_response(str(e), "QUOTA_EXCEEDED", 403, {"limit": e.limit})
        except ValueError as e:
            return _error_response(str(e), "VALIDATION_ERROR", 400)
        controller.commit_now()
        return JSONResponse(tag.to_dict(), status_code=201)

    @router.get("/tags/suggest")
    async def api_suggest_tags(q: str = "", controller: DataController = Depends(_get_controller)) -> JSONResponse:
        return JSONResponse([t.to_dict() for t in controller.suggested_tag_tokens(q)])

    @router.get("/awards")
    async def api_awards(controller: DataController = Depends(_get_controller)) -> JSONResponse:
        return JSONResponse([a.to_dict(earned=controller.has_earned(a)) for a in all_awards()])

    @router.get("/stats")
    async def api_stats(controller: DataController = Depends(_get_controller)) -> JSONResponse:
        return JSONResponse(dict(controller.stats()))

    return router


def create_app() -> Any:
    """Create the FastAPI application with all dashboard endpoints."""
    from fastapi import FastAPI

    app = FastAPI(title="issuedeck Dashboard", docs_url=None, redoc_url=None)
    app.include_router(_create_router(), prefix="/api")
    return app


def main(port: int = DEFAULT_PORT, *, no_browser: bool = False) -> None:
    """Start the dashboard server for the project discovered from cwd."""
    import threading

    import uvicorn

    from issuedeck.core import find_issuedeck_root
    from issuedeck.logging import setup_logging

    global _controller

    setup_logging(find_issuedeck_root())
    _controller = DataController.from_project()
    _controller.start_remote_watch()

    app = create_app()

    if not no_browser:
        threading.Timer(0.5, lambda: webbrowser.open(f"http://localhost:{port}/api/stats")).start()

    print(f"issuedeck Dashboard: http://localhost:{port}")
    try:
        uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
    finally:
        _controller.close()
        _controller = None
