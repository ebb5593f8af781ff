"""Single entry point for every vision-model request in the pipeline."""

from typing import Any, Dict, List, Optional, Union

from smeta.core.config import settings
from smeta.core.exceptions import ConfigurationError, ModelOutputError
from smeta.core.llm_client import OpenRouterClient
from smeta.services.vision.image_transform import to_data_url
from smeta.utils.json_parser import parse_json_safely
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)

EXCERPT_LENGTH = 500

Part = Dict[str, Any]


def text_part(text: str) -> Part:
    return {"text": text}


def image_part(image: Union[bytes, str], mime_type: str = "image/jpeg") -> Part:
    """Build an image part from JPEG bytes or an existing data URL."""
    url = image if isinstance(image, str) else to_data_url(image, mime_type)
    return {"image_url": url}


class VisionModelAdapter:
    """Sends ordered text/image parts to the vision model.

    Transport problems surface as APIClientError / APITimeoutError from the
    underlying client. A reply that arrives but cannot be used raises
    ModelOutputError.
    """

    def __init__(
        self,
        client: OpenRouterClient,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ):
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def call(self, system_prompt: str, parts: List[Part]) -> str:
        """Send one multimodal request and return the raw reply text.

        Args:
            system_prompt: Instruction sent as the system message
            parts: Ordered text and image parts

        Returns:
            Reply text

        Raises:
            APIClientError: Network or HTTP failure
            APITimeoutError: The request exceeded its time limit
            ModelOutputError: The reply was empty
        """
        generation_config: Dict[str, Any] = {"temperature": self.temperature}
        if self.max_tokens:
            generation_config["max_output_tokens"] = self.max_tokens

        image_count = sum(1 for part in parts if "image_url" in part)
        LOGGER.info(
            "Calling vision model",
            extra={"parts": len(parts), "images": image_count}
        )

        text = await self.client.generate_content(
            contents=parts,
            system_instruction=system_prompt,
            generation_config=generation_config,
        )
        if not text or not text.strip():
            raise ModelOutputError("Vision model returned an empty reply")
        return text

    async def call_json(self, system_prompt: str, parts: List[Part]) -> Union[Dict[str, Any], List[Any]]:
        """Call the model and parse its reply as JSON.

        Raises:
            ModelOutputError: The reply is empty or not parseable as JSON
        """
        text = await self.call(system_prompt, parts)
        parsed = parse_json_safely(text)
        if parsed is None or not isinstance(parsed, (dict, list)):
            excerpt = text[:EXCERPT_LENGTH]
            LOGGER.error(
                "Vision model reply is not valid JSON",
                extra={"excerpt": excerpt}
            )
            raise ModelOutputError("Vision model reply is not valid JSON", raw_excerpt=excerpt)
        return parsed


def build_vision_adapter() -> VisionModelAdapter:
    """Create an adapter from application settings.

    Raises:
        ConfigurationError: If no OpenRouter API key is configured
    """
    llm = settings.llm
    if not llm.openrouter_api_key:
        raise ConfigurationError("OPENROUTER_API_KEY is not set")
    client = OpenRouterClient(
        api_key=llm.openrouter_api_key,
        model=llm.openrouter_model,
        base_url=llm.openrouter_api_url,
        timeout=llm.timeout_seconds,
        max_retries=llm.max_retries,
        retry_delay=llm.retry_delay,
        chunk_size=llm.upload_chunk_size,
        app_url=llm.app_url,
        app_title=llm.app_title,
    )
    return VisionModelAdapter(client, temperature=llm.temperature, max_tokens=llm.max_tokens)
