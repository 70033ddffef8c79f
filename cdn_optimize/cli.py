"""CLI interface for the CDN image optimizer using Typer.

Main entry point for the application. Runs the delivery server, checks
configuration and origin access, and previews transforms on local files.
"""

from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from .config import (
    ConfigError,
    get_origin_config,
    get_r2_config,
    get_server_config,
    load_secrets,
    validate_config,
)
from .errors import ImageDeliveryError
from .origin import create_origin_store
from .process import PillowCodec, execute
from .resolver import resolve
from .server import create_app
from .storage import guess_content_type
from .utils import format_file_size, format_savings, print_error, print_success, setup_logging

# Output file extension per content type
EXTENSIONS = {
    'image/webp': '.webp',
    'image/jpeg': '.jpg',
    'image/png': '.png',
}


app = typer.Typer(
    name="cdn-optimize",
    help="Serve images from Cloudflare R2 with on-the-fly optimization",
    add_completion=False,
)
console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="Bind address (default: server.host or 0.0.0.0)",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Bind port (default: server.port or 3001)",
    ),
    secrets: Optional[Path] = typer.Option(
        None,
        "--secrets",
        help="Path to secrets.json",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (default: server.log_level or INFO)",
    ),
) -> None:
    """Run the image delivery server."""
    try:
        config = load_secrets(secrets)
        validate_config(config)
        server_config = get_server_config(config)
        origin_config = get_origin_config(config)
        store = create_origin_store(origin_config, get_r2_config(config))
    except (ConfigError, ValueError) as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    level = (log_level or server_config.log_level).upper()
    setup_logging(level)

    api = create_app(server_config, store)
    uvicorn.run(
        api,
        host=host or server_config.host,
        port=port or server_config.port,
        log_level=level.lower(),
    )


@app.command()
def auth(
    secrets: Optional[Path] = typer.Option(
        None,
        "--secrets",
        help="Path to secrets.json",
    ),
) -> None:
    """Validate secrets.json and test the origin connection."""
    try:
        with console.status("[bold green]Validating configuration..."):
            config = load_secrets(secrets)
            validate_config(config)

        console.print("[green]✓[/green] Configuration valid")

        r2_config = get_r2_config(config)
        origin_config = get_origin_config(config)
        store = create_origin_store(origin_config, r2_config)

        with console.status("[bold green]Testing origin connection..."):
            store.verify()

        if r2_config is not None:
            console.print("[green]✓[/green] R2 connection successful")
            console.print(f"  Bucket: {r2_config.bucket_name}")
        else:
            console.print("[green]✓[/green] Origin reachable")
            console.print(f"  URL: {origin_config.public_url}")
        console.print(f"  Timeout: {origin_config.timeout:g}s")

    except (ConfigError, ValueError) as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        raise typer.Exit(1)
    except RuntimeError as e:
        console.print(f"[red]✗[/red] Connection error: {e}")
        raise typer.Exit(1)


@app.command()
def optimize(
    file: Path = typer.Argument(
        ...,
        help="Local image file to transform",
        exists=True,
        dir_okay=False,
    ),
    output_format: str = typer.Option(
        "original",
        "--format",
        "-f",
        help="Target format: original|webp|jpeg|png",
    ),
    quality: int = typer.Option(
        80,
        "--quality",
        "-q",
        help="Encode quality",
    ),
    width: Optional[int] = typer.Option(
        None,
        "--width",
        "-w",
        help="Max width",
    ),
    height: Optional[int] = typer.Option(
        None,
        "--height",
        help="Max height",
    ),
    auto: bool = typer.Option(
        False,
        "--auto",
        "-a",
        help="Apply device/connection auto-optimization",
    ),
    user_agent: str = typer.Option(
        "",
        "--user-agent",
        "-u",
        help="User-Agent to classify the device with",
    ),
    accept: str = typer.Option(
        "image/avif,image/webp,*/*",
        "--accept",
        help="Accept header to classify the connection with",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Where to write the result (default: <file>.optimized.<ext>)",
    ),
) -> None:
    """Preview a transform on a local file, exactly as the server would apply it."""
    query = {"format": output_format, "quality": str(quality)}
    if width is not None:
        query["width"] = str(width)
    if height is not None:
        query["height"] = str(height)
    if auto:
        query["autoOptimize"] = "true"

    headers = {"user-agent": user_agent, "accept": accept}
    effective = resolve(query, headers)

    source = file.read_bytes()
    try:
        result = execute(source, guess_content_type(file.name), effective, PillowCodec())
    except ImageDeliveryError as e:
        print_error(f"{e.message}: {e.detail}")
        raise typer.Exit(1)

    if output is None:
        extension = EXTENSIONS.get(result.content_type, file.suffix)
        output = file.with_name(f"{file.stem}.optimized{extension}")
    output.write_bytes(result.data)

    table = Table(title=file.name)
    table.add_column("", style="bold")
    table.add_column("Value")
    table.add_row("Device", effective.device)
    table.add_row("Connection", effective.connection)
    table.add_row("Format", f"{effective.format} -> {result.content_type}")
    table.add_row("Quality", str(effective.quality))
    if result.dimensions:
        table.add_row("Dimensions", f"{result.dimensions[0]}x{result.dimensions[1]}")
    table.add_row("Original size", format_file_size(len(source)))
    table.add_row("Optimized size", format_file_size(len(result.data)))
    table.add_row("Change", format_savings(len(source), len(result.data)))
    console.print(table)

    print_success(f"Wrote {output}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
