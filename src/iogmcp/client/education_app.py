"""
Example education app client for the IOG MCP tool server.

The caller decides which tools to run by passing typed ``ToolRequest``
objects; the client executes them in order and renders a plain-text answer.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx
from loguru import logger

__all__ = ["ToolRequest", "ToolResult", "EducationAppClient"]

DEFAULT_SERVER_URL = "http://localhost:3002"


@dataclass(frozen=True)
class ToolRequest:
    name: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    tool: str
    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def _excerpt(text: Any, length: int) -> str:
    text = str(text)
    return text if len(text) <= length else f"{text[:length]}..."


def _money(value: float, currency: str) -> str:
    return f"{value:,.2f} {currency.upper()}"


class EducationAppClient:
    """
    Crypto education app backed by the tool server.

    Example:
        ```python
        async with EducationAppClient("http://localhost:3002") as app:
            await app.initialize()
            answer = await app.process(
                [ToolRequest("getProduct", {"name": "realfi"})],
                user_persona="crypto novice",
            )
            print(answer["response"])
        ```
    """

    def __init__(self, server_url: str = DEFAULT_SERVER_URL, timeout: float = 30.0, **client_kwargs: Any):
        """
        Args:
            server_url: Base URL of the tool server
            timeout: Request timeout in seconds
            **client_kwargs: Extra ``httpx.AsyncClient`` arguments (e.g. ``transport``)
        """
        self.server_url = server_url.rstrip("/")
        self.tools: Optional[Dict[str, Any]] = None
        self._client = httpx.AsyncClient(base_url=self.server_url, timeout=timeout, **client_kwargs)

    async def initialize(self) -> bool:
        """Discover the server's tools. Returns False when the server is unreachable."""
        try:
            response = await self._client.get("/mcp/tools")
            response.raise_for_status()
            self.tools = response.json().get("tools", {})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to discover tools at {self.server_url}: {e}")
            return False

        logger.info(f"Discovered tools: {', '.join(self.tools)}")
        return True

    async def execute_tool(self, request: ToolRequest) -> ToolResult:
        """Run one tool; failures are recorded in the result, not raised."""
        logger.debug(f"Executing tool: {request.name}")
        try:
            response = await self._client.post(
                "/mcp/execute", json={"tool": request.name, "params": request.params}
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Error executing tool {request.name}: {e}")
            return ToolResult(tool=request.name, success=False, error=str(e))

        if not isinstance(payload, dict):
            return ToolResult(tool=request.name, success=False, error="Unexpected response payload")
        if response.status_code >= 400:
            return ToolResult(tool=request.name, success=False, error=payload.get("error", response.text))
        if payload.get("success") is False:
            return ToolResult(tool=request.name, success=False, result=payload, error=payload.get("error"))
        return ToolResult(tool=request.name, success=True, result=payload)

    async def execute_tools(self, requests: Sequence[ToolRequest]) -> List[ToolResult]:
        """Run tools one after another, in request order."""
        results = []
        for request in requests:
            results.append(await self.execute_tool(request))
        return results

    def generate_response(self, results: Sequence[ToolResult], user_persona: Optional[str] = None) -> Dict[str, Any]:
        """Render tool results as a text answer."""
        successful = [r for r in results if r.success]
        if not successful:
            return {"success": False, "response": "I was unable to find the information you requested."}

        sections: List[str] = []
        for result in successful:
            section = self._render(result)
            if section:
                sections.append(section)

        if user_persona:
            sections.append(f"This information is tailored for a {user_persona} audience.")

        return {
            "success": True,
            "response": "\n\n".join(sections),
            "toolResults": [r.result for r in successful],
        }

    def _render(self, result: ToolResult) -> str:
        payload = result.result or {}

        if result.tool == "calculator":
            return f"The calculation result is: {payload.get('result')}"

        if result.tool == "getPersona":
            if "persona" in payload:
                name, description = next(iter(payload["persona"].items()))
                return f'About the "{name}" persona: {description}'
            lines = ["Available personas:"]
            lines += [f"- {name}: {_excerpt(desc, 50)}" for name, desc in payload.get("personas", {}).items()]
            return "\n".join(lines)

        if result.tool == "getProduct":
            if "product" in payload:
                name, description = next(iter(payload["product"].items()))
                text = f"About {name.upper()}: {description}"
                if payload.get("details"):
                    text += f"\n\nDetailed information:\n{_excerpt(payload['details'], 200)}"
                return text
            lines = ["IOG Products:"]
            lines += [f"- {name.upper()}: {_excerpt(desc, 50)}" for name, desc in payload.get("products", {}).items()]
            return "\n".join(lines)

        if result.tool == "search":
            return f"Search results: {', '.join(payload.get('results', []))}"

        if result.tool == "cryptoPrice":
            return self._render_crypto(payload)

        return ""

    @staticmethod
    def _render_crypto(payload: Dict[str, Any]) -> str:
        if "priceData" in payload:
            data = payload["priceData"]
            prices = ", ".join(_money(v, c) for c, v in sorted(data.get("prices", {}).items()))
            return f"Current {data.get('coinId')} price: {prices or 'unavailable'}"

        if "stakingResults" in payload:
            data = payload["stakingResults"]
            coin = data.get("coinId")
            text = (
                f"Staking {data.get('principal'):,} {coin} for {data.get('years')} years at "
                f"{data.get('apy')}% APY grows to {data.get('finalAmount'):,.2f} {coin} "
                f"(+{data.get('gainAmount'):,.2f})."
            )
            converted = data.get("converted") or {}
            if converted:
                text += " Worth about " + ", ".join(_money(v, c) for c, v in converted.items()) + " at today's price."
            elif not data.get("conversionAvailable"):
                text += " Current prices are unavailable, so no fiat value is shown."
            return text

        if "coins" in payload:
            names = [f"{c.get('name')} ({str(c.get('symbol', '')).upper()}, id: {c.get('id')})" for c in payload["coins"]]
            return "Matching coins: " + (", ".join(names) if names else "none")

        return ""

    async def process(self, requests: Sequence[ToolRequest], user_persona: Optional[str] = None) -> Dict[str, Any]:
        """Discover tools if needed, execute ``requests`` and render the answer."""
        if self.tools is None:
            await self.initialize()
        results = await self.execute_tools(requests)
        return self.generate_response(results, user_persona)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


async def run_example(server_url: str = DEFAULT_SERVER_URL) -> None:
    """Walk through a few typical education-app requests."""
    async with EducationAppClient(server_url) as app:
        if not await app.initialize():
            return

        examples = [
            ("crypto novice", [ToolRequest("getProduct", {"name": "realfi"})]),
            ("crypto zero", [
                ToolRequest("cryptoPrice", {
                    "action": "calculateStaking", "amount": 1000, "years": 5, "apy": 5, "coinId": "cardano",
                }),
            ]),
            ("builder", [
                ToolRequest("getPersona", {"name": "crypto novice"}),
                ToolRequest("getPersona", {"name": "crypto savvy"}),
            ]),
            ("crypto literate", [
                ToolRequest("getProduct", {"name": "midnight", "detailed": True}),
                ToolRequest("getPersona", {"name": "all"}),
            ]),
        ]

        for index, (persona, requests) in enumerate(examples, start=1):
            answer = await app.process(requests, user_persona=persona)
            print(f"\nExample {index} Response:")
            print(answer["response"])


if __name__ == "__main__":
    asyncio.run(run_example())
