from __future__ import annotations

import re
from io import BytesIO
from mimetypes import guess_type
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, Type

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_ai import Agent, BinaryContent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError, UserError
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from .errors import CredentialError, ExtractorError

DEFAULT_MODEL = "openai:gpt-4o"

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)
_ROWS = TypeAdapter(List[Any])


class StructuredExtractor(Protocol):
    """Turns images plus an instruction into JSON text."""

    async def extract(
        self,
        images: Sequence[Any],
        instruction: str,
        output_schema: Optional[Type[BaseModel]] = None,
    ) -> str: ...


def parse_json_rows(text: str) -> List[Any]:
    """
    Parse an extractor response as a JSON array.

    Markdown code fences around the payload are tolerated. Raises ValueError
    when the text is not JSON or the document is not an array.
    """
    match = _FENCE.match(text or "")
    payload = match.group(1) if match else (text or "")
    try:
        return _ROWS.validate_json(payload)
    except ValidationError as exc:
        raise ValueError(f"Response is not a JSON array: {exc.errors()[0]['msg']}") from exc


class VisionExtractor:
    """
    Vision LLM agent that returns JSON text for a set of page images.

    Uses pydanticAI. Without an output schema the model answers free-form and
    the text is returned untouched; with a schema the agent validates a list
    of that model and the result is dumped back to JSON.
    """

    system_prompt = (
        "You are a careful data extraction assistant for scanned shipping documents. "
        "Use only evidence from the provided images and data. "
        "If a value is missing or unclear, use null. Do not invent data. "
        "Answer with JSON only."
    )

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        *,
        api_key: Optional[str] = None,
        model: Optional[Model] = None,
    ):
        self.model_name = model_name
        self.api_key = api_key
        self._model = model

    @property
    def model(self) -> Model | str:
        if self._model is None:
            provider, _, name = self.model_name.rpartition(":")
            # an explicit key is bound to OpenAI; other providers read their own env vars
            if not self.api_key or provider not in ("", "openai"):
                return self.model_name
            self._model = OpenAIChatModel(name, provider=OpenAIProvider(api_key=self.api_key))
        return self._model

    def _agent(self, output_type: Any) -> Agent[None, Any]:
        try:
            return Agent(model=self.model, output_type=output_type, system_prompt=self.system_prompt)
        except UserError as exc:
            # raised when the provider cannot find an API key
            raise CredentialError(str(exc)) from exc

    async def extract(
        self,
        images: Sequence[Any],
        instruction: str,
        output_schema: Optional[Type[BaseModel]] = None,
    ) -> str:
        output_type: Any = str if output_schema is None else List[output_schema]  # type: ignore[valid-type]
        agent = self._agent(output_type)

        inputs: List[Any] = [instruction]
        inputs.extend(self._build_image_inputs(images))

        try:
            result = await agent.run(inputs)
        except ModelHTTPError as exc:
            if exc.status_code in (401, 403):
                raise CredentialError(f"{exc.model_name} rejected the credential ({exc.status_code})") from exc
            raise ExtractorError(f"{exc.model_name} returned HTTP {exc.status_code}") from exc
        except AgentRunError as exc:
            raise ExtractorError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise ExtractorError(f"Transport error: {exc}") from exc

        if output_schema is None:
            return str(result.output)
        return TypeAdapter(output_type).dump_json(result.output).decode()

    def _build_image_inputs(self, images: Sequence[Any]) -> List[Any]:
        """
        Normalize images to BinaryContent objects for vision models.

        Accepts:
        - bytes: treated as JPEG bytes
        - str/Path: path to an image file
        - PIL.Image: will be converted to JPEG bytes
        """
        inputs: List[Any] = []
        for img in images:
            data: Optional[bytes] = None
            media_type = "image/jpeg"

            if isinstance(img, BinaryContent):
                inputs.append(img)
                continue
            if isinstance(img, bytes):
                data = img
            elif isinstance(img, (str, Path)):
                path = Path(img)
                if path.exists():
                    data = path.read_bytes()
                    media_type = guess_type(path.name)[0] or media_type
            elif hasattr(img, "save"):
                buffer = BytesIO()
                img.convert("RGB").save(buffer, format="JPEG")
                data = buffer.getvalue()

            if not data:
                continue

            inputs.append(BinaryContent(data=data, media_type=media_type))

        return inputs
