"""
Task Queue CLI

Command-line interface for task queue administration.

Commands:
- send: Queue a task (same validation as the HTTP API)
- stream-info: Show stream length, dead-letter length and consumer groups
- list-dlq: List dead-lettered tasks
- replay-dlq: Republish dead-lettered tasks to the task stream
"""

import json

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from starter_core.redis import create_redis_client
from starter_core.settings import get_settings
from task_dispatch.errors import TransportError, ValidationError
from task_dispatch.producer import TaskProducer
from task_dispatch.transport.redis_streams import RedisStreamTransport

app = typer.Typer(
    name="task-cli",
    help="Task queue administration CLI",
)

console = Console()


def get_transport() -> RedisStreamTransport:
    """Redis transport built from the environment settings."""
    settings = get_settings()
    return RedisStreamTransport(
        create_redis_client(settings.REDIS_URL),
        stream_name=settings.QUEUE_STREAM_NAME,
        group_name=settings.QUEUE_GROUP_NAME,
        consumer_name="task-cli",
        dlq_stream=settings.QUEUE_DLQ_STREAM,
        max_len=settings.QUEUE_MAX_LEN,
        max_deliveries=settings.QUEUE_MAX_DELIVERIES,
    )


@app.command()
def send(
    kind: str = typer.Argument(..., help="Task kind (email, notification, webhook)"),
    payload: str = typer.Option("{}", help="Task payload as a JSON object"),
):
    """
    Queue a task.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        rprint(f"[red]Payload is not valid JSON: {e}[/red]")
        raise typer.Exit(1)

    producer = TaskProducer(get_transport())

    try:
        result = producer.send({"kind": kind, "payload": data})
    except ValidationError as e:
        rprint(f"[red]Invalid task: {e.field}: {e.message}[/red]")
        raise typer.Exit(1)
    except TransportError as e:
        rprint(f"[red]Queue unavailable: {e}[/red]")
        raise typer.Exit(1)

    rprint(f"[green]Queued {kind} task[/green]")
    rprint(f"  Message ID: {result.message_id}")
    rprint(f"  Timestamp: {result.timestamp}")


@app.command()
def stream_info():
    """
    Show information about the task stream.
    """
    info = get_transport().stream_info()

    rprint(f"\n[cyan]Stream: {info['stream']}[/cyan]")
    rprint(f"  Length: {info['length']}")
    rprint(f"  Dead letters ({info['dlq_stream']}): {info['dlq_length']}")

    if info["groups"]:
        rprint("\n  Consumer Groups:")
        for group in info["groups"]:
            rprint(f"    - {group['name']}: {group['pending']} pending, {group['consumers']} consumers")


@app.command()
def list_dlq(
    limit: int = typer.Option(20, help="Maximum number of entries to show"),
):
    """
    List dead-lettered tasks.
    """
    entries = get_transport().read_dead_letters(limit)

    if not entries:
        rprint("[yellow]No messages in DLQ[/yellow]")
        raise typer.Exit(0)

    table = Table(title="Dead-lettered tasks")
    table.add_column("DLQ ID", style="dim")
    table.add_column("Original ID")
    table.add_column("Kind")
    table.add_column("Attempts")
    table.add_column("Dead-lettered at")

    for dlq_id, data in entries:
        table.add_row(
            dlq_id,
            data.get("original_msg_id", "-"),
            data.get("kind", "-"),
            data.get("attempts", "-"),
            data.get("dead_lettered_at", "-"),
        )

    console.print(table)


@app.command()
def replay_dlq(
    limit: int = typer.Option(10, help="Maximum messages to replay"),
):
    """
    Replay messages from the dead letter queue.

    Each entry is republished to the task stream and removed from the DLQ.
    """
    transport = get_transport()
    entries = transport.read_dead_letters(limit)

    if not entries:
        rprint("[yellow]No messages in DLQ[/yellow]")
        raise typer.Exit(0)

    rprint(f"[cyan]Found {len(entries)} messages in DLQ[/cyan]")

    replayed = 0
    for dlq_id, data in entries:
        try:
            msg_id = transport.replay_dead_letter(dlq_id, data)
        except (KeyError, ValueError, TypeError) as e:
            rprint(f"[yellow]Skipping {dlq_id}: {e}[/yellow]")
            continue

        replayed += 1
        rprint(f"[green]Replayed {dlq_id} as {msg_id}[/green]")

    rprint(f"\n[green]Replayed {replayed} messages[/green]")


if __name__ == "__main__":
    app()
