import json

import click


@click.group()
def main() -> None:
    """askbridge - let a coding agent ask the human, from the IDE or a phone."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from ASKBRIDGE_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from ASKBRIDGE_PORT or 3580).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the interaction server."""
    import uvicorn

    from askbridge.interaction.settings import AskBridgeSettings

    settings = AskBridgeSettings()

    uvicorn.run(
        "askbridge.interaction.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
        timeout_graceful_shutdown=settings.graceful_shutdown_timeout,
    )


@main.command()
@click.argument("text", required=False)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON.")
def parse(text: str | None, as_json: bool) -> None:
    """Show the choices and approval classification detected in TEXT.

    Reads TEXT from stdin when omitted.
    """
    from askbridge.interaction.choices import detect_choices, is_approval_question

    if text is None:
        text = click.get_text_stream("stdin").read()

    choices = detect_choices(text)
    approval = not choices and is_approval_question(text)

    if as_json:
        payload = {"choices": [choice.to_wire() for choice in choices], "approval": approval}
        click.echo(json.dumps(payload, indent=2))
        return

    if choices:
        for choice in choices:
            click.echo(f"[{choice.value}] {choice.label}")
    else:
        click.echo("No choices detected.")
    click.echo(f"Approval question: {'yes' if approval else 'no'}")


if __name__ == "__main__":
    main()
