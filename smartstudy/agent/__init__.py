"""LLM gateway for question extraction and tutoring.

Responsibilities:
    - Structured extraction of exam questions from images
    - Tutor replies, single-shot and streamed
    - Prompt construction with optional question-bank context
    - Environment-driven model configuration

Leverages the Agno framework for model access.
Keeps no conversation state; callers pass history explicitly.
"""

from smartstudy.agent.agno_gateway import AgnoGateway, get_gateway
from smartstudy.agent.config import GatewayConfig, get_gateway_config
from smartstudy.agent.gateway import AssistantGateway

__all__ = [
    "AgnoGateway",
    "AssistantGateway",
    "GatewayConfig",
    "get_gateway",
    "get_gateway_config",
]
