"""Runtime wiring for delegations."""

from __future__ import annotations

from loguru import logger

from .cancellation import CancellationToken
from .config import Settings
from .conversation import ChatRequest, PromptContext
from .core.client import ModelClient, OpenAIModelClient
from .core.loop import LoopConfig, SubagentToolCallingLoop, ToolCallingLoop
from .core.prompt import PromptBudget
from .stream import ResponseStream
from .tools.base import ToolInvocationOptions, ToolMode
from .tools.execution_subagent import ExecutionSubagentParams, ExecutionSubagentTool
from .tools.names import ToolName
from .tools.registry import ToolRegistry
from .tools.terminal import RunInTerminalTool


class DelegationRuntime:
    """Owns the registry, model client and loop factory used by delegations."""

    def __init__(self, settings: Settings, *, client: ModelClient | None = None) -> None:
        self.settings = settings
        self.workspace = settings.resolve_workspace()
        self._client = client
        self.budget = PromptBudget(
            max_chars=settings.prompt_max_chars,
            tool_result_max_chars=settings.tool_result_max_chars,
        )
        self.registry = ToolRegistry()
        self.registry.register(RunInTerminalTool(self.workspace, timeout_seconds=settings.command_timeout_seconds))
        self.registry.register(ExecutionSubagentTool(self.create_loop))

    @property
    def client(self) -> ModelClient:
        if self._client is None:
            self._client = OpenAIModelClient(
                self.settings.model,
                api_key=self.settings.resolved_api_key,
                api_base=self.settings.api_base,
                max_tokens=self.settings.max_tokens,
                timeout_seconds=self.settings.model_timeout_seconds,
            )
        return self._client

    def create_loop(self, config: LoopConfig) -> ToolCallingLoop:
        return SubagentToolCallingLoop(config, registry=self.registry, client=self.client, budget=self.budget)

    async def delegate(
        self,
        params: ExecutionSubagentParams,
        *,
        stream: ResponseStream | None = None,
        token: CancellationToken | None = None,
    ) -> str:
        """Run one execution subagent the way an outer agent would call the tool."""
        token = token or CancellationToken.none()
        descriptor = self.registry.get(ToolName.EXECUTION_SUBAGENT)
        if descriptor is None:
            raise KeyError(ToolName.EXECUTION_SUBAGENT)

        tool = descriptor.tool
        context = PromptContext(request=ChatRequest(prompt=params.command, model=self.settings.model), stream=stream)
        prepared = tool.prepare_invocation(params)
        if stream is not None and prepared is not None:
            stream.progress(prepared.invocation_message)

        params = await tool.resolve_input(params, context, ToolMode.FULL_CONTEXT)
        logger.info("runtime.delegate workspace={} model={}", self.workspace, self.settings.model)
        result = await self.registry.execute(
            ToolName.EXECUTION_SUBAGENT,
            options=ToolInvocationOptions(input=params, context=context),
            token=token,
        )
        return result.text
