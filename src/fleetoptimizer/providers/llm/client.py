"""Chat client for Ollama and OpenAI-compatible (LiteLLM, vLLM) endpoints"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from ...core.base import BaseExplainer
from ...core.exceptions import LLMError

logger = logging.getLogger(__name__)

OPENAI_CHAT_PATH = "/v1/chat/completions"
OPENAI_URL_HINTS = (OPENAI_CHAT_PATH, "litellm", "openai", "vllm")

EXPLAIN_PROMPT = """You are a Kubernetes infrastructure expert. Enhance and improve this NodePool optimization explanation to make it more clear, professional, and actionable.

Draft Explanation:
{rationale}

NodePool Details:
- Name: {node_pool}
- Current: {current_nodes} nodes, ${current_cost:.2f}/hr
- Recommended: {recommended_nodes} nodes, ${recommended_cost:.2f}/hr
- Savings: ${savings:.2f}/hr ({savings_percent:.1f}%)
- Architecture: {architecture}
- Capacity Type: {capacity_type}

Provide an enhanced explanation (2-4 sentences) that keeps the technical details accurate.
Return only the enhanced explanation text, no additional formatting."""

PRICE_PROMPT = """You are an AWS pricing expert. Provide the on-demand hourly cost in USD for AWS EC2 instance type "{instance_type}" in the us-east-1 (N. Virginia) region.

Respond ONLY with a JSON object in this exact format:
{{
  "instanceType": "{instance_type}",
  "pricePerHour": 0.123,
  "region": "us-east-1"
}}

If you don't know the exact price, estimate it based on similar instance types in the same family."""


def detect_provider(url: str) -> str:
    lowered = url.lower()
    if any(hint in lowered for hint in OPENAI_URL_HINTS):
        return "litellm"
    return "ollama"


def extract_json(text: str) -> Dict[str, Any]:
    """Parse the outermost {...} in a model reply"""
    start = text.find("{")
    end = text.rfind("}")
    candidate = text[start:end + 1] if 0 <= start < end else text
    try:
        data = json.loads(candidate)
    except ValueError as e:
        raise LLMError(f"Reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LLMError("Reply JSON is not an object")
    return data


class LLMClient(BaseExplainer):
    """Text-enhancement collaborator backed by a chat endpoint"""

    def __init__(self, url: str = "http://localhost:11434",
                 model: str = "granite4:latest",
                 provider: Optional[str] = None,
                 api_key: Optional[str] = None,
                 explain_timeout: float = 15.0,
                 estimate_timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.provider = (provider or detect_provider(url)).lower()
        self.model = model
        self.api_key = api_key
        self.explain_timeout = explain_timeout
        self.estimate_timeout = estimate_timeout

        base = url.rstrip("/")
        if base.endswith(OPENAI_CHAT_PATH):
            base = base[:-len(OPENAI_CHAT_PATH)]
        self.base_url = base

        headers = {"Content-Type": "application/json"}
        if self.provider == "litellm" and api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = httpx.Client(headers=headers, transport=transport)

    @classmethod
    def from_config(cls, config) -> "LLMClient":
        api_key = config.api_key.get_secret_value() if config.api_key else None
        return cls(
            url=config.url,
            model=config.model,
            provider=config.provider,
            api_key=api_key,
            explain_timeout=config.explain_timeout,
            estimate_timeout=config.estimate_timeout,
        )

    @property
    def endpoint(self) -> str:
        if self.provider == "litellm":
            return f"{self.base_url}{OPENAI_CHAT_PATH}"
        return f"{self.base_url}/api/chat"

    def chat(self, prompt: str, timeout: Optional[float] = None) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
        }
        logger.debug(f"Sending {self.provider} request to {self.endpoint} ({len(prompt)} chars)")

        try:
            response = self.client.post(self.endpoint, json=payload, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"{self.provider} request failed with status {e.response.status_code}: "
                f"{e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise LLMError(f"{self.provider} request failed: {e}") from e
        except ValueError as e:
            raise LLMError(f"Failed to decode {self.provider} response: {e}") from e

        try:
            if self.provider == "litellm":
                return data["choices"][0]["message"]["content"]
            return data["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected {self.provider} response shape") from e

    def explain(self, context: Dict[str, Any]) -> str:
        current = context.get("current", {})
        recommended = context.get("recommended", {})
        prompt = EXPLAIN_PROMPT.format(
            rationale=context.get("rationale", ""),
            node_pool=context.get("node_pool", ""),
            current_nodes=current.get("node_count", 0),
            current_cost=current.get("hourly_cost", 0.0),
            recommended_nodes=recommended.get("node_count", 0),
            recommended_cost=recommended.get("hourly_cost", 0.0),
            savings=context.get("cost_savings", 0.0),
            savings_percent=context.get("cost_savings_percent", 0.0),
            architecture=current.get("architecture", ""),
            capacity_type=recommended.get("capacity_class") or current.get("capacity_type", ""),
        )
        reply = self.chat(prompt, timeout=self.explain_timeout).strip()

        # Some models wrap the answer in a JSON object
        if reply.startswith("{"):
            try:
                data = json.loads(reply)
            except ValueError:
                return reply
            for key in ("explanation", "response", "text"):
                if isinstance(data, dict) and data.get(key):
                    return str(data[key]).strip()
        return reply

    def estimate_price(self, instance_type: str) -> float:
        reply = self.chat(PRICE_PROMPT.format(instance_type=instance_type),
                          timeout=self.estimate_timeout)
        data = extract_json(reply)
        try:
            price = float(data.get("pricePerHour", 0))
        except (TypeError, ValueError) as e:
            raise LLMError(f"Invalid pricePerHour for {instance_type}") from e
        if price <= 0:
            raise LLMError(f"No usable price estimate for {instance_type}")
        logger.info(f"Text model priced {instance_type} at ${price:.4f}/hr")
        return price

    def close(self):
        self.client.close()
