import os

from dotenv import load_dotenv
from typing import Any, Callable, Optional
from langchain_openai import ChatOpenAI
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    HumanMessage,
    SystemMessage,
    BaseMessage,
)
from pydantic import BaseModel, Field

from loopagent.errors import ConfigurationError
from loopagent.utils.logger import get_logger


load_dotenv()

log = get_logger(__name__)


DEFAULT_MODEL = os.getenv("LOOPAGENT_MODEL", "google/gemini-2.5-flash")
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_CONTEXT_WINDOW = int(os.getenv("LOOPAGENT_CONTEXT_WINDOW", "1048576"))
DEFAULT_TIMEOUT = 120


class Credentials(BaseModel):
    api_key: str = Field(..., description="API key for the chat completion endpoint")
    base_url: str = Field(DEFAULT_BASE_URL, description="OpenAI-compatible base URL")


def resolve_auth() -> Credentials:
    """
    Resolve backend credentials from the environment.

    Raises:
        ConfigurationError: OPENAI_API_KEY is not set
    """
    api_key = os.getenv("OPENAI_API_KEY", "")
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY environment variable is not set.")
    return Credentials(
        api_key=api_key,
        base_url=os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL),
    )


class ModelSettings(BaseModel):
    model: str = Field(..., description="Concrete model name sent to the backend")
    temperature: Optional[float] = Field(None, description="Sampling temperature")


ChatModelFactory = Callable[[ModelSettings], BaseChatModel]


def _get_chat_llm(
    settings: ModelSettings,
    credentials: Credentials,
) -> ChatOpenAI:
    """Build a ChatOpenAI instance for the given settings."""
    kwargs: dict[str, Any] = {}
    if settings.temperature is not None:
        kwargs["temperature"] = settings.temperature
    return ChatOpenAI(
        model=settings.model,
        api_key=credentials.api_key,
        base_url=credentials.base_url,
        timeout=DEFAULT_TIMEOUT,
        **kwargs,
    )


# ======================================================================
## Model Config Service
# ======================================================================


class ModelConfigService:
    """
    Resolves model aliases to settings and builds chat models.

    The main agent uses the ``"main"`` alias. Sub-agents register
    ``"<name>-config"`` aliases at call time.
    """

    MAIN_ALIAS = "main"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        chat_model_factory: Optional[ChatModelFactory] = None,
    ) -> None:
        self._aliases: dict[str, ModelSettings] = {
            self.MAIN_ALIAS: ModelSettings(model=model)
        }
        self._factory = chat_model_factory
        self._credentials: Optional[Credentials] = None

    @property
    def needs_credentials(self) -> bool:
        return self._factory is None

    def set_credentials(self, credentials: Credentials) -> None:
        self._credentials = credentials

    def get_active_model(self) -> str:
        return self._aliases[self.MAIN_ALIAS].model

    def set_active_model(self, model: str) -> None:
        self._aliases[self.MAIN_ALIAS] = ModelSettings(model=model)

    def register_runtime_model_config(self, alias: str, settings: ModelSettings) -> None:
        log.debug(f"Registering model alias {alias} -> {settings.model}")
        self._aliases[alias] = settings

    def resolve(self, alias: str) -> ModelSettings:
        settings = self._aliases.get(alias)
        if settings is None:
            raise KeyError(f"Unknown model alias: {alias}")
        return settings

    def create_chat_model(self, alias: str = MAIN_ALIAS) -> BaseChatModel:
        settings = self.resolve(alias)
        if self._factory is not None:
            return self._factory(settings)
        if self._credentials is None:
            self._credentials = resolve_auth()
        return _get_chat_llm(settings, self._credentials)


async def llm_call(
    prompt: str,
    chat_model: BaseChatModel,
    system_prompt: Optional[str] = None,
) -> str:
    """
    Single non-streaming call, returns the response text.

    Args:
        prompt: User prompt sent to the model
        chat_model: Chat model to call
        system_prompt: Optional system prompt
    """
    messages: list[BaseMessage] = []

    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))

    messages.append(HumanMessage(content=prompt))

    response: AIMessage = await chat_model.ainvoke(messages)

    if isinstance(response.content, str):
        return response.content
    return "".join(
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in response.content
    )
