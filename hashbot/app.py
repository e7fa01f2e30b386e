"""Bootstrap: wires the retry engine together."""

from __future__ import annotations

import logging
import logging.handlers
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from hashbot.agents.plan import SequentialPlanExecutor
from hashbot.core.audit import AuditLogger
from hashbot.core.commands import CommandJanitor, CommandStore
from hashbot.core.config import HashbotConfig
from hashbot.core.events import EventBus
from hashbot.core.providers import ProviderOrders
from hashbot.retry.ack import AckNotifier
from hashbot.retry.cascade import FallbackCascade, ProviderFallbackTool
from hashbot.retry.router import RetryRouter
from hashbot.storage.memory import MemoryCommandStore
from hashbot.storage.sqlite import SqliteCommandStore

if TYPE_CHECKING:
    from hashbot.agents.base import AgentTool, PlanExecutor, ProviderGateway
    from hashbot.connectors.base import BaseConnector
    from hashbot.core.models import ToolContext, ToolResult
    from hashbot.storage.base import CommandPersistence

logger = structlog.get_logger()


def configure_logging(config: HashbotConfig, *, log_dir: Path | None = None) -> None:
    """Set up structlog with console output and optional rotating JSON file handler."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
        )
    )
    root_logger.addHandler(console_handler)

    log_dir = log_dir or config.log_dir
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "hashbot.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(ensure_ascii=False),
            )
        )
        root_logger.addHandler(file_handler)

    for noisy_logger in ("aiosqlite", "asyncio"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_persistence(config: HashbotConfig) -> CommandPersistence:
    if config.storage_backend == "sqlite":
        return SqliteCommandStore(config.storage_path)
    return MemoryCommandStore()


class HashbotApp:
    """Holds the wired components and owns their lifecycle."""

    def __init__(
        self,
        *,
        config: HashbotConfig,
        persistence: CommandPersistence,
        commands: CommandStore,
        notifier: AckNotifier,
        router: RetryRouter,
        cascade: FallbackCascade | None,
        tools: dict[str, AgentTool],
        event_bus: EventBus,
        audit: AuditLogger,
        janitor: CommandJanitor,
    ) -> None:
        self.config = config
        self.persistence = persistence
        self.commands = commands
        self.notifier = notifier
        self.router = router
        self.cascade = cascade
        self.tools = tools
        self.event_bus = event_bus
        self.audit = audit
        self.janitor = janitor

    async def startup(self) -> None:
        await self.persistence.setup()
        self.janitor.start()
        logger.info("hashbot_started", tools=sorted(self.tools))

    async def shutdown(self) -> None:
        await self.janitor.stop()
        await self.persistence.teardown()
        logger.info("hashbot_stopped")

    async def handle_tool_call(
        self, name: str, args: dict[str, Any], context: ToolContext
    ) -> ToolResult:
        """Invoke a registered tool by name, as the upstream agent does."""
        tool = self.tools.get(name)
        if tool is None:
            raise KeyError(f"unknown tool: {name}")
        return await tool.execute(args, context)


def build_app(
    config: HashbotConfig | None = None,
    messenger: BaseConnector | None = None,
    tools: dict[str, AgentTool] | None = None,
    plan_executor: PlanExecutor | None = None,
    gateway: ProviderGateway | None = None,
    *,
    setup_logging: bool = True,
) -> HashbotApp:
    if config is None:
        config = HashbotConfig()

    if setup_logging:
        configure_logging(config)

    logger.info(
        "hashbot_building",
        storage_backend=config.storage_backend,
        language=config.language,
        has_messenger=messenger is not None,
        has_gateway=gateway is not None,
    )

    event_bus = EventBus()
    audit = AuditLogger(config.audit_log_path)
    audit.attach(event_bus)
    persistence = build_persistence(config)
    commands = CommandStore(persistence, event_bus=event_bus)
    notifier = AckNotifier(
        messenger,
        language=config.language,
        typing_delay_ms=config.ack_typing_delay_ms,
    )

    # The retry tools are added to the same registry they replay from.
    agent_tools: dict[str, AgentTool] = dict(tools or {})

    cascade = None
    if gateway is not None:
        orders = ProviderOrders(config.provider_orders_path)
        cascade = FallbackCascade(gateway, notifier, orders, event_bus=event_bus)
        agent_tools["retry_with_different_provider"] = ProviderFallbackTool(cascade)

    if plan_executor is None:
        plan_executor = SequentialPlanExecutor(agent_tools, notifier)

    router = RetryRouter(
        commands,
        agent_tools,
        plan_executor,
        notifier,
        config.agent_config(),
        gateway=gateway,
        event_bus=event_bus,
    )
    agent_tools["retry_last_command"] = router

    janitor = CommandJanitor(
        commands,
        ttl=timedelta(days=config.command_ttl_days),
        interval_seconds=config.cleanup_interval_hours * 3600,
    )

    logger.info(
        "hashbot_built",
        tool_count=len(agent_tools),
        has_cascade=cascade is not None,
    )

    return HashbotApp(
        config=config,
        persistence=persistence,
        commands=commands,
        notifier=notifier,
        router=router,
        cascade=cascade,
        tools=agent_tools,
        event_bus=event_bus,
        audit=audit,
        janitor=janitor,
    )
