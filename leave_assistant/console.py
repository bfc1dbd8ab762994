"""
Console adapter: prompts the user and prints agent lines.
"""

import click

AGENT_PREFIX = "Agent : "
USER_PROMPT = "User"
USER_PROMPT_SUFFIX = " : "


class ConsoleIO:
    """Reads user turns from stdin and writes agent turns to stdout."""

    def print_agent(self, text: str) -> None:
        click.echo(f"{AGENT_PREFIX}{text}")

    def read_user(self) -> str:
        """
        Prompt with "User : " and return the typed line.

        End of input and Ctrl-C come back as an empty line, which ends the chat.
        """
        try:
            return click.prompt(
                USER_PROMPT,
                default="",
                show_default=False,
                prompt_suffix=USER_PROMPT_SUFFIX,
            )
        except click.Abort:
            click.echo()
            return ""
