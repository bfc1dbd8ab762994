"""
Command-line entry point for the Leave Assistant chat.
"""

import logging
import sys

import click

from leave_assistant.agent import GREETING, ChatOrchestrator, TurnResult
from leave_assistant.config import settings
from leave_assistant.console import ConsoleIO
from leave_assistant.functions import FunctionRegistry
from leave_assistant.llm_client import ChatCompletionClient

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(level: str) -> None:
    # stderr, so the chat transcript on stdout stays readable
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_client(model: str | None = None) -> ChatCompletionClient:
    overrides = {"model": model} if model else {}
    return ChatCompletionClient.from_settings(settings, **overrides)


def run_chat(orchestrator: ChatOrchestrator, console: ConsoleIO) -> TurnResult:
    """Run the read/respond loop until the orchestrator reports the end."""
    conversation = orchestrator.start()
    console.print_agent(GREETING)

    while True:
        result = orchestrator.step(conversation, console.read_user())
        console.print_agent(result.reply)
        if result.ended:
            logger.info(f"Conversation ended after {len(conversation)} messages")
            return result


@click.command()
@click.option("--model", default=None, help="litellm model identifier, e.g. azure/<deployment>.")
@click.option(
    "--leave-balances",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the leave balances JSON file.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (defaults to LOG_LEVEL from the environment).",
)
def main(model: str | None, leave_balances: str | None, log_level: str | None) -> None:
    """Chat with the Leave Assistant. Type 'exit' or an empty line to quit."""
    configure_logging(log_level or settings.log_level)
    logger.info(f"Starting Leave Assistant (environment={settings.environment})")

    orchestrator = ChatOrchestrator(
        client=build_client(model),
        registry=FunctionRegistry(leave_balances or settings.leave_balances_file),
    )
    result = run_chat(orchestrator, ConsoleIO())

    if result.transport_failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
