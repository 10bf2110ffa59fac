import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .constants import ENV_VERBOSE, HANDLED_IMAGE_TYPES
from .core import AzureDriver
from .errors import DriverError
from .services.config_loader import ConfigLoader
from .services.operation_io import OperationIO
from .services.validation import ConfigValidator

DEFAULT_CONFIG_FILE = ".cnab-azure.yml"

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_level=False,
            show_path=False,
        )
    ],
)


def _load_environment(config_path):
    config_loader = ConfigLoader()
    resolved_config = config_path
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path

    return config_loader.merge(config_loader.load(resolved_config), os.environ)


@click.group(invoke_without_command=True)
@click.option("--handles", is_flag=True, help="Print the invocation image types this driver handles.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML file with CNAB_AZURE_* defaults. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, handles, config, verbose, log_file):
    """Run a CNAB operation read from stdin in Azure Container Instances."""
    if ctx.invoked_subcommand is not None:
        return

    if handles:
        click.echo(",".join(HANDLED_IMAGE_TYPES))
        return

    logger = logging.getLogger("cnabazure")

    try:
        environment = _load_environment(config)
        if verbose:
            environment[ENV_VERBOSE] = "true"
        driver_config = ConfigValidator().validate(environment)
    except DriverError as exc:
        raise click.ClickException(str(exc)) from exc

    if driver_config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.WARNING)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if driver_config.verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    operation_io = OperationIO(logger=logger)
    try:
        operation = operation_io.read_operation(click.get_text_stream("stdin"))
        output_dir = operation_io.output_directory(operation, environment)
        result = AzureDriver(driver_config).run(operation)
        operation_io.write_outputs(result, output_dir)
    except DriverError as exc:
        logger.debug("Operation failed", exc_info=True)
        raise click.ClickException(str(exc)) from exc


@main.command()
def version():
    """Print the driver version."""
    click.echo(f"cnab-azure {__version__}")


if __name__ == "__main__":
    main()
