import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from .config import ModelSettings, create_chat_model, create_embedding_model
from .embeddings._base import BaseEmbeddingModel
from .exceptions import ConfigurationError, ModelToolkitError
from .messages import Prompt
from .options import merge_options
from .providers._base import BaseChatModel, PromptInput
from .responses import ChatResponse
from .tools.tool_factory import ToolFactory

module_logger = logging.getLogger(__name__)


class ChatClient:
    """
    High-level client over one chat model and, optionally, one embedding model.
    Owns the ToolFactory whose tools the chat model may call, and accepts
    plain strings or message lists wherever a Prompt is expected.
    """

    def __init__(
        self,
        settings: Optional[ModelSettings] = None,
        tool_factory: Optional[ToolFactory] = None,
        chat_model: Optional[BaseChatModel] = None,
        embedding_model: Optional[BaseEmbeddingModel] = None,
        **settings_kwargs: Any,
    ) -> None:
        """
        Initializes the ChatClient.

        Args:
            settings (ModelSettings, optional): Settings used to build the models.
                                                Keyword arguments are accepted instead.
            tool_factory (ToolFactory, optional): An existing ToolFactory. If None,
                                                  a new one is created.
            chat_model (BaseChatModel, optional): A pre-built chat model; its own
                                                  ToolFactory is used.
            embedding_model (BaseEmbeddingModel, optional): A pre-built embedding model.
                                                            Built lazily from settings if None.
            **settings_kwargs: ModelSettings fields (provider, model, api_key, ...).
        """
        if settings is not None and settings_kwargs:
            raise ConfigurationError(
                "Pass either a ModelSettings instance or settings keywords, not both."
            )
        self.settings = settings or ModelSettings(**settings_kwargs)
        module_logger.info(
            "Initializing ChatClient for provider: %s", self.settings.resolved_provider()
        )

        try:
            if chat_model is None:
                chat_model = create_chat_model(self.settings, tool_factory=tool_factory)
            self.chat_model = chat_model
            module_logger.info(
                "Successfully created chat model: %s", type(self.chat_model).__name__
            )
        except (ConfigurationError, ImportError, ModelToolkitError) as e:
            module_logger.error("Failed to initialize ChatClient: %s", e, exc_info=True)
            raise

        self.tool_factory = self.chat_model.tool_factory
        self._embedding_model = embedding_model

    @property
    def embedding_model(self) -> BaseEmbeddingModel:
        if self._embedding_model is None:
            self._embedding_model = create_embedding_model(self.settings)
        return self._embedding_model

    def register_tool(
        self,
        function: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        enable: bool = True,
    ) -> None:
        """
        Registers a Python function as a tool with the client's ToolFactory.

        Args:
            function (Callable): The Python function to register.
            name (str, optional): Tool name. Defaults to the function's __name__.
            description (str, optional): Defaults to the function's docstring.
            parameters (Dict[str, Any], optional): JSON schema of the arguments.
                                                   Inferred from the signature if None.
            enable (bool): Also add the tool to the default options' ``functions``
                           so every call may use it.
        """
        name = name or function.__name__
        self.tool_factory.register_tool(
            function=function, name=name, description=description, parameters=parameters
        )
        if enable:
            self.chat_model.enable_tools(name)
        module_logger.info("Tool '%s' registered with ChatClient's ToolFactory.", name)

    def _prompt(self, prompt: PromptInput, options: Dict[str, Any]) -> Prompt:
        if not isinstance(prompt, Prompt):
            prompt = Prompt(prompt)
        if not options:
            return prompt
        merged = merge_options(self.chat_model.OPTIONS_CLASS, prompt.options, options)
        return Prompt(prompt.messages, merged)

    async def call(
        self,
        prompt: PromptInput,
        tool_execution_context: Optional[Dict[str, Any]] = None,
        **options: Any,
    ) -> ChatResponse:
        """
        Sends a prompt and returns the final response, running any requested tools.

        Args:
            prompt: A Prompt, a string, a Message, or a list of Messages.
            tool_execution_context (Dict, optional): Values injected into tools
                                                     whose signatures ask for them.
            **options: Per-call ChatOptions fields (model, temperature, functions, ...).

        Raises:
            ProviderError: The provider call failed.
            ToolError: A requested tool is unknown or failed.
            PreconditionError: The prompt or options are invalid.
        """
        module_logger.debug(
            "Client calling chat model. Options: %s, Context provided: %s",
            sorted(options),
            tool_execution_context is not None,
        )
        return await self.chat_model.call(
            self._prompt(prompt, options), tool_execution_context=tool_execution_context
        )

    async def stream(
        self,
        prompt: PromptInput,
        tool_execution_context: Optional[Dict[str, Any]] = None,
        **options: Any,
    ) -> AsyncIterator[ChatResponse]:
        """Streams responses chunk by chunk; see :meth:`call` for arguments."""
        responses = self.chat_model.stream(
            self._prompt(prompt, options), tool_execution_context=tool_execution_context
        )
        try:
            async for response in responses:
                yield response
        finally:
            # An abandoned async-for does not close the inner generator.
            await responses.aclose()

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Embeds *texts* as one batch; vectors come back in input order."""
        return await self.embedding_model.embed_all(texts)
