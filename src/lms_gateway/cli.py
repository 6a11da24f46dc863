"""Console script: run one adapter call against a configured LMS."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import typer
from rich.console import Console

from lms_gateway.application.in_memory_token_store import InMemoryAccessTokenStore
from lms_gateway.application.lms import AccessTokenStore, LmsAdapter
from lms_gateway.domain.connectivity import ConnectivityResult
from lms_gateway.domain.lms import LmsConfig, LmsType, Page, QuizData
from lms_gateway.infrastructure.db.session import create_default_session_factory
from lms_gateway.infrastructure.db.token_uow import SqlAlchemyAccessTokenStore
from lms_gateway.infrastructure.lms.factory import create_default_registry
from lms_gateway.infrastructure.lms.paging import parse_timestamp
from lms_gateway.infrastructure.logging_config import configure_logging
from lms_gateway.infrastructure.security.vault import create_default_vault

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="Test an LMS setup or list its quizzes.", no_args_is_help=True)
err_console = Console(stderr=True)


@dataclass(frozen=True)
class _Setup:
    setup_id: str
    lms_type: LmsType
    api_url: str
    client_name: str
    client_secret: str
    institution_id: str | None
    db: Path | None


@app.callback()
def options(
    ctx: typer.Context,
    lms_type: LmsType = typer.Option(..., "--type", help="LMS backend type."),
    setup_id: str = typer.Option("cli", help="LMS setup id used as token store key."),
    api_url: str = typer.Option("", "--url", help="LMS base URL."),
    client_name: str = typer.Option(""),
    client_secret: str = typer.Option("", help="Plain secret; encrypted before use."),
    institution_id: str | None = typer.Option(None),
    db: Path | None = typer.Option(
        None,
        help="SQLite file for persisted tokens; tokens stay in memory when omitted.",
    ),
) -> None:
    """Shared LMS setup options."""
    configure_logging()
    ctx.obj = _Setup(
        setup_id=setup_id,
        lms_type=lms_type,
        api_url=api_url,
        client_name=client_name,
        client_secret=client_secret,
        institution_id=institution_id,
        db=db,
    )


@app.command("test-connection")
def check_connection(ctx: typer.Context) -> None:
    """Check configuration and credentials."""
    with _open_adapter(ctx.obj) as adapter:
        result = adapter.test_connection()
    _echo_json(_connectivity_to_dict(result))
    if not result.is_ok():
        raise typer.Exit(code=1)


def _parse_since(value: str | None) -> datetime | None:
    if not value:
        return None
    since = parse_timestamp(value)
    if since is None:
        raise typer.BadParameter(f"not an ISO-8601 timestamp: {value!r}")
    return since


@app.command("list-quizzes")
def print_quizzes(
    ctx: typer.Context,
    name: str | None = typer.Option(None, help="Case-insensitive name filter."),
    since: str | None = typer.Option(None, help="ISO-8601 timestamp."),
    sort: str | None = typer.Option(None),
    page: int = typer.Option(0),
    page_size: int = typer.Option(20),
) -> None:
    """Print one page of quizzes."""
    since_at = _parse_since(since)
    with _open_adapter(ctx.obj) as adapter:
        result = adapter.get_quizzes(
            name_filter=name,
            since=since_at,
            sort=sort,
            page_number=page,
            page_size=page_size,
        )
    if result.error is not None:
        _echo_json({"error": _error_to_dict(result.error)})
        raise typer.Exit(code=1)
    _echo_json(_page_to_dict(result.value))


@contextmanager
def _open_adapter(setup: _Setup) -> Iterator[LmsAdapter]:
    """Resolve the adapter for the CLI setup; the registry closes on exit."""
    try:
        vault = create_default_vault()
        config = LmsConfig(
            id=setup.setup_id,
            lms_type=setup.lms_type,
            api_url=setup.api_url,
            client_name=setup.client_name,
            client_secret=vault.encrypt(setup.client_secret) if setup.client_secret else "",
            institution_id=setup.institution_id,
        )
        registry = create_default_registry(vault=vault, token_store=_token_store(setup.db))
    except Exception:
        correlation_id = str(uuid4())
        LOGGER.exception("event=cli_start_failed correlation_id=%s", correlation_id)
        err_console.print(
            f"[red]Could not initialise LMS gateway.[/red] correlation_id={correlation_id}"
        )
        raise typer.Exit(code=1) from None

    try:
        resolved = registry.resolve(config)
        if resolved.error is not None:
            _echo_json({"error": _error_to_dict(resolved.error)})
            raise typer.Exit(code=1)
        yield resolved.value
    finally:
        registry.close()


def _token_store(database_path: Path | None) -> AccessTokenStore:
    if database_path is None:
        return InMemoryAccessTokenStore()
    return SqlAlchemyAccessTokenStore.from_session_factory(
        create_default_session_factory(database_path)
    )


def _connectivity_to_dict(result: ConnectivityResult) -> dict[str, object]:
    return {
        "ok": result.is_ok(),
        "quiz_access_ok": result.is_quiz_access_ok(),
        "missing_attributes": [attribute.value for attribute in result.missing_attributes],
        "errors": [
            {"type": error.error_type.value, "message": error.message} for error in result.errors
        ],
    }


def _page_to_dict(page: Page[QuizData]) -> dict[str, object]:
    return {
        "number_of_pages": page.number_of_pages,
        "page_number": page.page_number,
        "page_size": page.page_size,
        "sort": page.sort,
        "content": [_quiz_to_dict(quiz) for quiz in page.content],
    }


def _quiz_to_dict(quiz: QuizData) -> dict[str, object]:
    return {
        "id": quiz.id,
        "name": quiz.name,
        "description": quiz.description,
        "start_time": quiz.start_time.isoformat() if quiz.start_time else None,
        "end_time": quiz.end_time.isoformat() if quiz.end_time else None,
        "start_url": quiz.start_url,
        "lms_setup_id": quiz.lms_setup_id,
        "lms_type": quiz.lms_type.value,
    }


def _error_to_dict(error: Exception) -> dict[str, object]:
    error_type = getattr(error, "error_type", None)
    return {
        "type": error_type.value if error_type is not None else None,
        "message": str(error),
    }


def _echo_json(payload: dict[str, object]) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
