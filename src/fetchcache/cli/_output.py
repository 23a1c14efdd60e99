import json

import httpx
from rich.console import Console
from rich.table import Table

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def print_error(message: str) -> None:
    err_console.print(f"[red bold]Error:[/red bold] {message}")


def print_warning(message: str) -> None:
    err_console.print(f"[yellow bold]Warning:[/yellow bold] {message}")


def print_headers(response: httpx.Response) -> None:
    table = Table(title=f"{response.http_version} {response.status_code} {response.reason_phrase}")
    table.add_column("Header", style="bold")
    table.add_column("Value")
    for name, value in response.headers.multi_items():
        table.add_row(name, value)
    console.print(table)


def print_body(body: bytes) -> None:
    console.out(body.decode("utf-8", errors="replace"), end="")


def print_json(value: object) -> None:
    console.print_json(json.dumps(value))


def print_key(key: str) -> None:
    console.print(key)
