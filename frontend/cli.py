"""
This file is the entry point for the 'pun' command-line tool.

By default pun runs as a build engine frontend: it serves build requests
over HTTP until stopped. With --standalone it compiles one local
Containerfile and prints the build graph (JSON) to stdout.
"""
import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from common.app_setup import print_and_log, print_error, setup_logging
from frontend import service
from frontend.handler import descriptor_to_graph
from packager.config import PunConfig, load_config
from packager.errors import MissingPath, PunError

app = typer.Typer(add_completion=False, context_settings={"help_option_names": ["-h", "--help"]},
                  help="Package unikernels into OCI images for urunc.")

logger = logging.getLogger(__name__)


@app.command()
def main(
    file: Optional[str] = typer.Option(None, "--file", "-f", help="Path to the Containerfile"),
    standalone: bool = typer.Option(False, "--standalone", help="Print the build graph of --file instead of serving build requests"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML/JSON configuration file"),
    host: str = typer.Option("127.0.0.1", help="Address to serve build requests on"),
    port: int = typer.Option(8080, help="Port to serve build requests on"),
    log_level: Optional[str] = typer.Option(None, help="Log level (default from configuration)"),
):
    """Compile a Containerfile into a build graph, or serve build requests."""
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        print_error(f"Failed to load configuration: {e}")
        raise typer.Exit(1)
    level = (log_level or config.log_level).upper()
    setup_logging(app_name="pun", daemon=not standalone, loglevel=level, logfile=config.logfile)

    if standalone:
        run_standalone(file, config)
    else:
        run_service(host, port, config, level)


def run_standalone(file: Optional[str], config: PunConfig):
    if not file or not file.strip():
        print_error(MissingPath().message)
        print_error("Use -h or --help for more info")
        raise typer.Exit(1)
    try:
        data = Path(file).read_bytes()
    except OSError as e:
        print_error(f"Failed to read {file}: {e}")
        raise typer.Exit(1)
    try:
        _, definition = descriptor_to_graph(data, config)
    except PunError as e:
        print_error(f"{type(e).__name__}: {e}")
        raise typer.Exit(1)
    logger.info(f"Writing build graph of {file} to stdout")
    typer.echo(definition.to_json())


def run_service(host: str, port: int, config: PunConfig, level: str = "INFO"):
    service.app.state.config = config
    print_and_log(f"Serving build requests on {host}:{port}, default engine {config.engine_url}")
    uvicorn.run(service.app, host=host, port=port, log_level=level.lower())


if __name__ == "__main__":
    app()
