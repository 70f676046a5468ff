"""Request commands -- send, show, curl and fingerprint.

``send`` runs the full send workflow: the request is fingerprinted, recorded
as loading, executed through the inspector server, and its outcome written
back to the response cache. The fingerprint printed by ``send`` is the
handle for ``show`` and ``curl`` later on.
"""

from __future__ import annotations

from typing import Optional

import typer

from wiretap.commands.common import build_manager, fail, load_config, parse_headers, run
from wiretap.output import format_response, get_output, info, print_data, print_state

_HEADER_HELP = "Request header as 'Name: value'. Repeatable."


async def _send(config, request, normalize_json):  # noqa: ANN001, ANN202
    from wiretap.client import InspectorExecutor, RequestSender

    manager = build_manager(config)
    async with InspectorExecutor.from_config(config.server) as executor:
        sender = RequestSender(manager, executor)
        key = await sender.send(
            request,
            normalize_json=normalize_json,
            on_started=lambda k: info(f"Sending {request.method} {request.url} ({k[:12]})"),
        )
    await manager.flush()
    return key, manager.peek(key)


def send_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method, e.g. GET or POST."),
    url: str = typer.Argument(help="Target URL."),
    header: Optional[list[str]] = typer.Option(None, "-H", "--header", help=_HEADER_HELP),
    data: str = typer.Option("", "-d", "--data", help="Request body."),
    json_body: bool = typer.Option(
        False, "--json-body", help="Compact the body as JSON before sending."
    ),
) -> None:
    """Send a request through the inspector and print the response.

    The response is cached under the printed fingerprint. A failed send is
    cached as an error and exits with the connection error code.

    Example::

        wiretap send POST https://api.example.com/items -H 'Content-Type: application/json' -d '{"a": 1}'
    """
    from wiretap.exceptions import ExecuteError
    from wiretap.models import RequestDescriptor

    config = load_config(ctx)
    request = RequestDescriptor(
        method=method.upper(), url=url, headers=parse_headers(header), body=data
    )
    key, state = run(_send(config, request, json_body))
    print_state(key, state)
    if state.error is not None:
        raise typer.Exit(code=ExecuteError.exit_code)


def show_command(
    ctx: typer.Context,
    key: str = typer.Argument(help="Response fingerprint."),
) -> None:
    """Show the cached response for a fingerprint.

    Example::

        wiretap show 9f86d081884c7d65...
    """
    from wiretap.exceptions import NotFoundError

    state = run(build_manager(load_config(ctx)).get_state(key))
    if state.is_empty:
        fail(NotFoundError(f"No cached response for {key}"))
    print_state(key, state)


def curl_command(
    ctx: typer.Context,
    key: str = typer.Argument(help="Response fingerprint."),
) -> None:
    """Print the request behind a cached response as a curl command."""
    from wiretap.client import curl_for_request
    from wiretap.exceptions import NotFoundError

    state = run(build_manager(load_config(ctx)).get_state(key))
    if state.request is None:
        fail(NotFoundError(f"No cached request for {key}"))
    print_data(curl_for_request(state.request))


def fingerprint_command(
    method: str = typer.Argument(help="HTTP method."),
    url: str = typer.Argument(help="Target URL."),
    header: Optional[list[str]] = typer.Option(None, "-H", "--header", help=_HEADER_HELP),
    data: str = typer.Option("", "-d", "--data", help="Request body."),
    timestamp: Optional[int] = typer.Option(
        None, "--timestamp", help="Send timestamp in milliseconds. Defaults to now."
    ),
) -> None:
    """Print the fingerprint of a request without sending it.

    Example::

        wiretap fingerprint GET https://x/y -H 'A: 1' --timestamp 1000
    """
    from wiretap.exceptions import WiretapError
    from wiretap.fingerprint import fingerprint
    from wiretap.models import RequestDescriptor
    from wiretap.output import OutputFormat

    fields = {"method": method.upper(), "url": url, "headers": parse_headers(header), "body": data}
    if timestamp is not None:
        fields["timestamp"] = timestamp
    request = RequestDescriptor(**fields)
    try:
        key = fingerprint(request)
    except WiretapError as exc:
        fail(exc)

    if get_output().format == OutputFormat.JSON:
        format_response({"hash": key, "timestamp": request.timestamp})
    else:
        print_data(key)
