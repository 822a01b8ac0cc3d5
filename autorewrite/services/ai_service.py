import json
import logging
import re
from typing import List, Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from autorewrite.services.prompts import (
    REWRITE_SCHEMA,
    SLUG_PICK_SCHEMA,
    SLUG_PICK_SYSTEM_PROMPT,
    rewrite_system_prompt,
)

logger = logging.getLogger(__name__)

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"\n?```\s*$")


class AIResponseError(RuntimeError):
    pass


class AIOption(BaseModel):
    name: Optional[str] = None
    position: Optional[int] = None
    values: Optional[List[str]] = None


class RewriteOutput(BaseModel):
    title: str
    description: str
    base_tags: List[str]
    subtags: List[str]
    extra_tags: List[str]
    collections: List[str] = []
    options: List[AIOption] = []

    @property
    def tags(self) -> list[str]:
        return [*self.base_tags, *self.subtags, *self.extra_tags]

    @property
    def option_names(self) -> list[dict]:
        return [
            {"name": o.name, "position": o.position or i + 1}
            for i, o in enumerate(self.options)
            if o.name
        ]


def strip_code_fences(content: str) -> str:
    s = (content or "").strip()
    s = _FENCE_START_RE.sub("", s)
    return _FENCE_END_RE.sub("", s).strip()


def parse_json_object(content: str) -> dict:
    raw = strip_code_fences(content)
    if not raw:
        raise AIResponseError("OpenAI: empty response")
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise AIResponseError(f"OpenAI: response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AIResponseError("OpenAI: response JSON is not an object")
    return data


class OpenAIService:
    """Thin wrapper around the OpenAI Responses API for the two product prompts."""

    def __init__(self, api_key: str | None, model: str = "gpt-4o-mini", language: str = "Slovak", client=None):
        self.api_key = api_key
        self.model = model
        self.language = language
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def _complete_json(self, system: str, user: str, schema_name: str, schema: dict, temperature: float) -> dict:
        resp = await self.client.responses.create(
            model=self.model,
            temperature=temperature,
            input=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": schema_name,
                    "schema": schema,
                    "strict": False,
                }
            },
        )
        return parse_json_object(resp.output_text)

    async def rewrite_product(self, prompt: str) -> RewriteOutput:
        data = await self._complete_json(
            rewrite_system_prompt(self.language), prompt, "product_rewrite", REWRITE_SCHEMA, temperature=0.2,
        )
        try:
            return RewriteOutput.model_validate(data)
        except ValidationError as e:
            raise AIResponseError(f"OpenAI: rewrite response does not match the contract: {e}") from e

    async def pick_collection_slugs(self, payload: dict) -> list[str]:
        """Raw slug picks; callers must filter them against the whitelist they offered."""
        data = await self._complete_json(
            SLUG_PICK_SYSTEM_PROMPT,
            json.dumps(payload, ensure_ascii=False),
            "collection_slug_pick",
            SLUG_PICK_SCHEMA,
            temperature=0.0,
        )
        picks = data.get("collections_node_slugs")
        if not isinstance(picks, list):
            return []
        return [str(p) for p in picks if p]
