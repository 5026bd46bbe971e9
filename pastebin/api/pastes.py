from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, current_app, request
from pydantic import ValidationError

from pastebin.api.schemas import (
    PasteCreateRequest,
    PasteCreatedResponse,
    PasteListResponse,
    PasteSummaryResponse,
    PasteViewResponse,
)
from pastebin.db import SessionLocal
from pastebin.domain.identifiers import is_valid_paste_id
from pastebin.observability import get_correlation_id
from pastebin.services.paste_store import (
    InvalidPasteParameters,
    PasteIdConflict,
    PasteStore,
)

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

# A collision needs 62**8 bad luck; more than a couple in a row means the
# id source or the table is broken.
CREATE_ATTEMPTS = 3


def _paste_store() -> PasteStore:
    return PasteStore(
        session_factory=SessionLocal,
        max_content_chars=current_app.config["MAX_CONTENT_CHARS"],
    )


def _share_url(paste_id: str) -> str:
    base = current_app.config["PUBLIC_BASE_URL"].rstrip("/")
    return f"{base}/{paste_id}"


def _invalid_id() -> tuple[dict, int]:
    return {"error": "Invalid paste ID"}, HTTPStatus.BAD_REQUEST


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Validation is handled by Pydantic; business rules by the store.
    """
    try:
        payload = PasteCreateRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return {
            "error": "Invalid request body",
            "details": exc.errors(
                include_url=False, include_context=False, include_input=False
            ),
        }, HTTPStatus.BAD_REQUEST

    paste_store = _paste_store()
    for attempt in range(1, CREATE_ATTEMPTS + 1):
        try:
            record = paste_store.create(
                content=payload.content,
                title=payload.title,
                ttl_seconds=payload.ttl_seconds,
                max_views=payload.max_views,
            )
            break
        except InvalidPasteParameters as exc:
            return {"error": str(exc)}, HTTPStatus.BAD_REQUEST
        except PasteIdConflict:
            if attempt == CREATE_ATTEMPTS:
                logger.error(
                    "Giving up on paste creation after repeated id conflicts",
                    extra={
                        "event": "paste_id_conflict",
                        "correlation_id": get_correlation_id(),
                    },
                )
                return {"error": "Failed to create paste"}, HTTPStatus.INTERNAL_SERVER_ERROR

    body = PasteCreatedResponse.from_record(record, _share_url(record.id))
    return body.model_dump(mode="json"), HTTPStatus.CREATED


@api_bp.route("/pastes", methods=["GET"])
def list_pastes() -> tuple[dict, int]:
    """Live paste summaries, newest first. Time-expired pastes are swept first."""
    max_limit = current_app.config["PASTE_LIST_LIMIT"]
    limit = request.args.get("limit", default=max_limit, type=int)
    if limit < 1:
        return {"error": "limit must be a positive integer"}, HTTPStatus.BAD_REQUEST

    summaries = _paste_store().list_live(limit=min(limit, max_limit))
    body = PasteListResponse(
        pastes=[PasteSummaryResponse.from_summary(s) for s in summaries]
    )
    return body.model_dump(mode="json", by_alias=True), HTTPStatus.OK


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def view_paste(paste_id: str) -> tuple[dict, int]:
    """
    Return a paste and count the view.

    ``HEAD`` runs the same checks without counting a view.
    """
    if not is_valid_paste_id(paste_id):
        return _invalid_id()

    record = _paste_store().fetch_and_consume(
        paste_id,
        should_increment=request.method != "HEAD",
    )
    if record is None:
        return {"error": "Paste not found or has expired"}, HTTPStatus.NOT_FOUND

    return PasteViewResponse.from_record(record).model_dump(mode="json"), HTTPStatus.OK


@api_bp.route("/pastes/<paste_id>", methods=["DELETE"])
def delete_paste(paste_id: str) -> tuple[dict, int]:
    """Delete a paste. A malformed id cannot exist, so it is simply not found."""
    if not is_valid_paste_id(paste_id) or not _paste_store().remove(paste_id):
        return {"error": "Paste not found"}, HTTPStatus.NOT_FOUND
    return {"success": True, "message": "Paste deleted"}, HTTPStatus.OK


@api_bp.route("/pastes", methods=["DELETE"])
def delete_all_pastes() -> tuple[dict, int]:
    count = _paste_store().remove_all()
    return {
        "success": True,
        "message": f"Deleted {count} paste(s)",
        "deleted": count,
    }, HTTPStatus.OK
