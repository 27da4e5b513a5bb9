from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from debate_arena.core.config import settings
from debate_arena.services.ai_platforms import GroqClient

router = APIRouter(tags=["ai"], prefix="/ai")


async def get_groq_client(request: Request) -> GroqClient:
    """
    Dependency returning the application's single GroqClient.

    Built on first use and kept on ``app.state`` so every request shares one
    circuit breaker. Runs on the event loop with no await between the check
    and the assignment, so concurrent first requests cannot build two clients.
    """
    client = getattr(request.app.state, "groq_client", None)
    if client is None:
        client = GroqClient()
        request.app.state.groq_client = client
    return client


def _circuit_payload(client: GroqClient) -> Dict[str, Any]:
    return {
        "circuit": client.circuit_breaker.name,
        **client.circuit_health().as_dict(),
        "can_execute": client.circuit_breaker.can_execute,
    }


@router.get("/circuit", summary="Circuit breaker state for the completion API")
async def circuit_status(
    client: GroqClient = Depends(get_groq_client),
) -> Dict[str, Any]:
    return _circuit_payload(client)


@router.get("/health", summary="Probe the completion API")
async def ai_health(
    response: Response,
    client: GroqClient = Depends(get_groq_client),
) -> Dict[str, str]:
    """
    Sends a tiny completion through the resilient client.

    Responds 503 when the upstream is unhealthy or the circuit is open.
    """
    result = await client.health_check()
    if result["status"] != "healthy":
        response.status_code = 503
    return result


@router.post("/circuit/reset", summary="Force the circuit breaker closed")
async def reset_circuit(
    client: GroqClient = Depends(get_groq_client),
) -> Dict[str, Any]:
    if not settings.ENABLE_DEBUG_ENDPOINTS:
        raise HTTPException(status_code=404, detail="Not Found")
    client.reset_circuit_breaker()
    return _circuit_payload(client)
