import logging

from openai import OpenAI

logger = logging.getLogger(__name__)


class LLMService:
    """Light wrapper around an OpenAI-compatible client"""

    def __init__(self, *, client: OpenAI, model: str):
        self.client = client
        self.model = model

    @classmethod
    def create(
        cls,
        *,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        **kwargs,
    ) -> "LLMService":
        client = OpenAI(api_key=api_key, base_url=base_url, **kwargs)
        return cls(client=client, model=model)

    @property
    def service_id(self) -> str:
        return f"{self.__class__.__name__}:{self.client.base_url}:{self.model}"

    def embedding(self, inputs, **kwargs):
        return self.client.embeddings.create(model=self.model, input=inputs, **kwargs)
