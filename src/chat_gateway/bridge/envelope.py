"""
SSE envelope written by the bridge and read by the Bedrock and Mantle adapters.

Each event is one `data:` line holding exactly one of `content`, `reasoning`
or `metadata`; the stream ends with `data: [DONE]`.
"""

import json
from typing import Any, Dict, Optional

DONE_EVENT = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def content_event(text: str) -> str:
    return sse_event({"content": text})


def reasoning_event(text: str) -> str:
    return sse_event({"reasoning": text})


def metadata_event(usage: Optional[Dict[str, Any]], metrics: Optional[Dict[str, Any]] = None) -> str:
    metadata: Dict[str, Any] = {"usage": usage}
    if metrics is not None:
        metadata["metrics"] = metrics
    return sse_event({"metadata": metadata})


class BridgeError(Exception):
    """Error answered as `{error, errorType, errorDetail}` with a status code."""

    def __init__(
        self,
        status_code: int,
        error: str,
        error_type: str = "Error",
        detail: Optional[str] = None,
    ):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.error_type = error_type
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "errorType": self.error_type,
            "errorDetail": self.detail or self.error,
        }
