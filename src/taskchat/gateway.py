"""HTTP client for the task tool gateway (/mcp/v1/tools)."""

from __future__ import annotations

import json
import logging

import httpx

logger = logging.getLogger(__name__)

TOOLS_PATH = "/mcp/v1/tools"


class GatewayError(RuntimeError):
    """A tool call could not be completed."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


def describe_tools(tools: list[dict]) -> str:
    """Render the tool catalog as the plain-text list embedded in prompts."""
    blocks = []
    for tool in tools:
        props = tool.get("inputSchema", {}).get("properties", {})
        blocks.append(
            f"- {tool['name']}: {tool.get('description', '')}\n"
            f"  Parameters: {json.dumps(props, indent=2)}"
        )
    return "\n\n".join(blocks)


def _error_from_response(resp: httpx.Response) -> GatewayError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    err = body.get("error") if isinstance(body, dict) else None
    err = err or {}
    if isinstance(err, str):
        return GatewayError(err)
    message = err.get("message") or f"HTTP {resp.status_code}"
    return GatewayError(message, code=err.get("code"))


def _json_body(resp: httpx.Response) -> dict:
    try:
        body = resp.json()
    except ValueError as e:
        raise GatewayError(f"Tool gateway sent invalid JSON: {e}") from e
    return body if isinstance(body, dict) else {}


class ToolGateway:
    """Lists and executes the task tools exposed by the gateway server."""

    def __init__(
        self,
        base_url: str = "http://localhost:6000",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def list_tools(self) -> list[dict]:
        try:
            resp = self._client.get(f"{self.base_url}{TOOLS_PATH}")
        except httpx.HTTPError as e:
            raise GatewayError(f"Cannot reach tool gateway at {self.base_url}: {e}") from e
        if resp.is_error:
            raise _error_from_response(resp)
        return _json_body(resp).get("tools", [])

    def execute(self, action: str, parameters: dict | None = None) -> dict:
        """Run one tool and return its ``{success, ...}`` result envelope."""
        logger.info("Executing tool %s", action)
        try:
            resp = self._client.post(
                f"{self.base_url}{TOOLS_PATH}/{action}",
                json={"arguments": parameters or {}},
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"Cannot reach tool gateway at {self.base_url}: {e}") from e

        if resp.is_error:
            error = _error_from_response(resp)
            logger.error("Tool %s failed (%s): %s", action, error.code, error)
            raise error

        result = _json_body(resp).get("result")
        if not isinstance(result, dict):
            raise GatewayError(f"Tool {action} returned no result")
        return result

    def close(self) -> None:
        self._client.close()
