from __future__ import annotations
import json
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer

from .bootstrap import build_app
from .config_loader import ConfigError
from .config_store import PROVIDER_BASE_URLS, mask_secret, validate_config
from .core.errors import NotConfiguredError, PersistenceError, ProviderError
from .core.models import SUGGESTED_MODELS, SUPPORTED_PROVIDERS, Question

app = typer.Typer(add_completion=False, help="Ask an AI tutor about quiz questions.")
config_app = typer.Typer(help="Show or edit the AI provider settings.")
app.add_typer(config_app, name="config")

DEFAULT_CONFIG = Path("config/default.yaml")


def _load(config: Path) -> dict:
    try:
        return build_app(config)
    except (ConfigError, FileNotFoundError) as e:
        typer.echo(f"[config] {e}", err=True)
        raise typer.Exit(code=1)


@config_app.command("show")
def config_show(config: Path = typer.Option(DEFAULT_CONFIG, "--config")):
    ctx = _load(config)
    store = ctx["config_store"]
    current = store.get()

    print(f"provider:          {current.provider}")
    print(f"model:             {current.model}")
    print(f"api key:           {mask_secret(current.credential)}")
    print(f"endpoint:          {current.endpoint or PROVIDER_BASE_URLS.get(current.provider) or '(not set)'}")
    print(f"disclosure policy: {current.disclosure_policy}")
    for err in validate_config(current):
        print(f"! {err}")


@config_app.command("set")
def config_set(
    provider: Optional[str] = typer.Option(None, help=f"One of: {', '.join(SUPPORTED_PROVIDERS)}"),
    api_key: Optional[str] = typer.Option(None, "--api-key"),
    model: Optional[str] = typer.Option(None),
    endpoint: Optional[str] = typer.Option(None, help="Base URL override; required for 'custom'."),
    policy: Optional[str] = typer.Option(None, help="Answer disclosure: never, after_submit, always."),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config"),
):
    ctx = _load(config)
    store = ctx["config_store"]

    changes = {
        "provider": provider.lower() if provider else None,
        "credential": api_key,
        "model": model,
        "endpoint": endpoint,
        "disclosure_policy": policy,
    }
    updated = replace(store.get(), **{k: v for k, v in changes.items() if v is not None})

    errors = validate_config(updated)
    if errors:
        for err in errors:
            typer.echo(err, err=True)
        raise typer.Exit(code=1)

    try:
        store.set(updated)
    except PersistenceError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    print("AI settings saved.")


@app.command("models")
def models():
    for provider in SUPPORTED_PROVIDERS:
        names = SUGGESTED_MODELS.get(provider)
        print(f"{provider}: {', '.join(names) if names else '(any model name)'}")


@app.command("ask")
def ask(
    question: str,
    title: Optional[str] = typer.Option(None, help="Quiz question title to give as context."),
    body: Optional[str] = typer.Option(None, help="Quiz question text to give as context."),
    question_file: Optional[Path] = typer.Option(None, "--question-file", help="Quiz question as JSON."),
    submitted: bool = typer.Option(False, "--submitted", help="The answer has been submitted already."),
    stream: bool = typer.Option(True, "--stream/--no-stream"),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config"),
):
    ctx = _load(config)
    client = ctx["client"]

    quiz: Optional[Question] = None
    if question_file is not None:
        try:
            data = json.loads(question_file.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            quiz = Question.from_dict(data)
        except (OSError, ValueError) as e:
            client.close()
            typer.echo(f"[question] {question_file}: {e}", err=True)
            raise typer.Exit(code=1)

    try:
        if stream:
            if quiz is not None:
                result = client.ask_about_question_with_context_stream(question, quiz, submitted)
            elif title:
                result = client.ask_about_question_stream(question, title, body or "")
            else:
                result = client.chat_stream(question)
            with result:
                try:
                    for piece in result.chunks:
                        print(piece, end="", flush=True)
                    print("")
                except KeyboardInterrupt:
                    result.cancel()
                    print("\n[stream interrupted]")
        else:
            if quiz is not None:
                reply = client.ask_about_question_with_context(question, quiz, submitted)
            elif title:
                reply = client.ask_about_question(question, title, body or "")
            else:
                reply = client.chat(question)
            print(reply.text)
            if reply.usage:
                u = reply.usage
                print(f"[tokens: prompt={u.prompt_tokens} completion={u.completion_tokens} total={u.total_tokens}]")
    except NotConfiguredError as e:
        typer.echo(f"{e} Run `quizai config set --api-key ...`.", err=True)
        raise typer.Exit(code=2)
    except ProviderError as e:
        typer.echo(f"AI request failed: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        client.close()


@app.command("serve")
def serve(
    config: Path = typer.Option(DEFAULT_CONFIG, "--config"),
    host: str = "127.0.0.1",
    port: int = 8000,
):
    from .web.app import run

    run(config=config, host=host, port=port)


if __name__ == "__main__":
    app()
