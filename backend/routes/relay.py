"""Tool invocation relay route."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from typing import Dict
from middleware.auth import require_auth
from models.tools import TriggerToolRequest, ErrorResponse
from services.relay_service import DownstreamRejected, DownstreamUnreachable, N8nRelayClient

logger = logging.getLogger(__name__)

router = APIRouter()


def get_relay_client(request: Request) -> N8nRelayClient:
    return request.app.state.relay_client


@router.post("/trigger-tool")
def trigger_tool(
    body: TriggerToolRequest,
    user: Dict = Depends(require_auth),
    client: N8nRelayClient = Depends(get_relay_client)
):
    """Forward a dashboard tool action to the automation endpoint."""
    # Identity comes from the verified token, not the request body
    if body.user_id != user["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="user_id does not match the authenticated user"
        )

    try:
        result = client.trigger(user["user_id"], body.tool_id, body.input)

    except DownstreamUnreachable as e:
        status_code = 504 if e.reason == "timeout" else 502
        error = ErrorResponse(error="downstream_unreachable", detail=e.detail, retryable=True)
        return JSONResponse(status_code=status_code, content=error.model_dump())

    except DownstreamRejected as e:
        error = ErrorResponse(
            error="downstream_rejected",
            detail=str(e),
            retryable=e.retryable,
            downstream_status=e.status_code,
            downstream_body=e.body
        )
        return JSONResponse(status_code=502, content=error.model_dump())

    return Response(
        content=result.content,
        status_code=result.status_code,
        media_type=result.content_type or "application/json"
    )
