"""Entry point when the package is executed as a module."""

import asyncio
import json
import sys
from pathlib import Path

import click

from .platform.clients.agent import (
    Conversation,
    ToolChoice,
    ToolChoiceMode,
    read_run_artifact,
    reconstruct,
    run_conversation,
)
from .platform.clients.agent.exceptions import AgentPersistenceError, OrchestrationError
from .platform.observability import configure_logging
from .platform.observability.errors import initialize_bugsnag
from .platform.settings import Settings


def _setup(settings: Settings) -> None:
    configure_logging(settings.log.level, json_output=settings.log.json_output)
    if settings.bugsnag is not None:
        initialize_bugsnag(settings.bugsnag.api_key, settings.bugsnag.release_stage)


def _load_conversation(messages: tuple[str, ...], conversation_file: Path | None, conversation_id: str | None):
    if conversation_file is not None:
        data = json.loads(conversation_file.read_text(encoding="utf-8"))
        if conversation_id:
            data["conversation_id"] = conversation_id
        return Conversation.from_dict(data)
    return Conversation.from_texts(messages, conversation_id=conversation_id)


@click.group()
def main():
    """Run and replay streamed agent conversations."""


@main.command()
@click.option("--message", "-m", "messages", multiple=True, help="Caller message; repeat for several.")
@click.option(
    "--conversation-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with conversation_id and messages.",
)
@click.option("--conversation-id", default=None)
@click.option("--endpoint", default=None, help="Overrides AGENT__URL.")
@click.option("--tool-choice", type=click.Choice([mode.value for mode in ToolChoiceMode]), default=None)
@click.option("--allow-tool", "allowed_tools", multiple=True, help="Tool the agent may call; repeatable.")
@click.option("--timeout", type=float, default=None, help="Overall run deadline in seconds.")
@click.option("--artifacts-dir", type=click.Path(file_okay=False, path_type=Path), default=None)
@click.option("--strict", is_flag=True, help="Fail the run on malformed frames.")
def run(
    messages,
    conversation_file,
    conversation_id,
    endpoint,
    tool_choice,
    allowed_tools,
    timeout,
    artifacts_dir,
    strict,
):
    """Run one conversation, print its result and persist the artifact."""
    settings = Settings()
    if strict:
        settings.run.strict_decoding = True
    _setup(settings)

    if not messages and conversation_file is None:
        raise click.UsageError("Provide --message or --conversation-file")

    try:
        conversation = _load_conversation(messages, conversation_file, conversation_id)
        constraint = None
        if tool_choice or allowed_tools:
            constraint = ToolChoice(
                mode=ToolChoiceMode(tool_choice or ToolChoiceMode.AUTO),
                allowed=frozenset(allowed_tools),
            )
        result = asyncio.run(
            run_conversation(
                endpoint or settings.agent.url,
                settings.auth_config(),
                conversation,
                constraint,
                timeout if timeout is not None else settings.run.timeout_seconds,
                artifacts_dir=artifacts_dir or settings.run.artifacts_dir,
                config=settings.client_config(),
            )
        )
    except (OrchestrationError, ValueError) as e:
        raise click.UsageError(str(e)) from e

    click.echo(json.dumps(result.summary(), indent=2))
    sys.exit(0 if result.succeeded else 1)


@main.command()
@click.argument("artifact", type=click.Path(exists=True, file_okay=False, path_type=Path))
def replay(artifact):
    """Rebuild a run's result from its persisted event log."""
    try:
        stored = read_run_artifact(artifact)
    except AgentPersistenceError as e:
        raise click.ClickException(str(e)) from e

    rebuilt = reconstruct(stored)
    keys = ("status", "answer", "tool_calls", "error")
    matches = all(getattr(rebuilt, key) == getattr(stored.result, key) for key in keys)

    summary = rebuilt.summary()
    summary["matches_stored_result"] = matches
    click.echo(json.dumps(summary, indent=2))
    sys.exit(0 if matches else 1)


if __name__ == "__main__":
    sys.exit(main())
