"""Mapping of agentflow exceptions to HTTP errors."""

from fastapi import HTTPException

from ..errors import AgentFlowError, ErrorCode

_STATUS_CODES = {
    ErrorCode.AGENT_NOT_FOUND: 404,
    ErrorCode.WORKFLOW_NOT_FOUND: 404,
    ErrorCode.TOOL_NOT_FOUND: 404,
    ErrorCode.AGENT_ALREADY_REGISTERED: 409,
    ErrorCode.INVALID_WORKFLOW: 422,
}


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate an exception raised by a component into an HTTPException."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, AgentFlowError):
        return HTTPException(
            status_code=_STATUS_CODES.get(exc.code, 500), detail=exc.to_error().to_dict()
        )
    if isinstance(exc, ValueError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
