"""Entry point for the ``shipyard`` command."""

import click

from shipyard import __version__
from shipyard.cli.commands.deploy import deploy
from shipyard.cli.commands.registry import registry


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="shipyard")
def main() -> None:
    """Shipyard - deploy only the workspace modules that changed."""


main.add_command(deploy)
main.add_command(registry)


if __name__ == "__main__":
    main()
