"""
Command-line interface for layered-agents.
"""

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable

import anthropic
import openai
import structlog

from .config import Settings, get_settings
from .errors import OrchestrationError

logger = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog on top of stdlib logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="layered-agents",
        description="layered-agents - hierarchical LLM agents with compressible memory",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("chat", help="Talk to the coordinator (coordinator -> managers -> workers)")
    subparsers.add_parser("memory-chat", help="Talk to the memory-backed assistant")
    subparsers.add_parser("agents", help="Show the agent hierarchy")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.command == "chat":
        asyncio.run(run_chat(settings, memory=False))
    elif args.command == "memory-chat":
        asyncio.run(run_chat(settings, memory=True))
    elif args.command == "agents":
        show_agents(settings)
    elif args.command == "config":
        show_config(settings, args.check)
    else:
        parser.print_help()


async def _repl(title: str, handle: Callable[[str], Awaitable[str]]) -> None:
    print(f"--- {title} ---")
    print("Type exit to quit\n")

    while True:
        try:
            user_input = await asyncio.to_thread(input, "User: ")
        except (EOFError, KeyboardInterrupt):
            break
        user_input = user_input.strip()
        if not user_input:
            continue
        if user_input.lower() == "exit":
            break

        try:
            reply = await handle(user_input)
        except (OrchestrationError, openai.APIError, anthropic.APIError) as e:
            logger.error("Request failed", error=str(e))
            print(f"\nError: {e}\n")
            continue

        print(f"\nAssistant: {reply}\n")


async def run_chat(settings: Settings, memory: bool) -> None:
    """Run an interactive session."""
    from .agent import LineObserver, Orchestrator

    try:
        orchestrator = Orchestrator(settings=settings, observer=LineObserver())
    except OrchestrationError as e:
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)

    if memory:
        await _repl("Memory assistant", orchestrator.chat_with_memory)
    else:
        await _repl("Hierarchical agents (coordinator -> manager -> worker)", orchestrator.handle)


def show_agents(settings: Settings) -> None:
    """Print the agent hierarchy as a tree."""
    from .hierarchy import build_default_registry

    registry = build_default_registry(settings.terminal_marker)
    try:
        registry.validate()
    except OrchestrationError as e:
        print(f"Invalid hierarchy: {e}")
        sys.exit(1)

    def walk(agent_id: str, depth: int) -> None:
        agent = registry.require(agent_id)
        tools = f"  tools: {', '.join(agent.tools)}" if agent.tools else ""
        print(f"{'    ' * depth}{agent.id} [{agent.level.value}] via {agent.delegate.name}{tools}")
        for child in agent.children:
            walk(child, depth + 1)

    walk(registry.root().id, 0)


def show_config(settings: Settings, check: bool) -> None:
    """Show current configuration."""
    llm_config = settings.get_llm_config()

    print("layered-agents Configuration")
    print("=" * 40)
    print(f"Provider: {llm_config.provider}")
    print(f"Model: {llm_config.model}")
    print(f"Base URL: {llm_config.base_url or '(provider default)'}")
    print(f"Terminal marker: {settings.terminal_marker}")
    print(f"Max iterations: {settings.max_agent_iterations}")
    print(f"Max delegation depth: {settings.max_delegation_depth}")
    print(f"Delegation scope: {settings.delegation_scope}")
    print(f"Inject max messages: {settings.inject_max_messages}")
    print(f"Compress threshold: {settings.compress_threshold} (take {settings.compress_take_count})")
    print(f"Merge threshold: {settings.merge_threshold}")

    if check:
        print("\nConfiguration Check:")
        issues = []

        if not llm_config.api_key:
            issues.append(f"No API key configured for provider '{llm_config.provider}'")

        if issues:
            for issue in issues:
                print(f"  ✗ {issue}")
            sys.exit(1)
        else:
            print("  ✓ Configuration looks good!")


if __name__ == "__main__":
    main()
