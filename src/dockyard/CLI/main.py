"""
Command Line Interface for Dockyard.
"""
import click

from ..errors import DockyardError, UnknownCommand
from ..UTILS.logging_setup import configure_logging
from .dispatcher import parse_command
from .session import Session

POSITIONAL_ONLY = {"allow_interspersed_args": False}


class DockyardGroup(click.Group):
    """
    Group that reports unknown sub-commands and Dockyard errors with their
    own kind and exit code.
    """
    def resolve_command(self, ctx, args):
        name = args[0] if args else ""
        if name and not name.startswith("-") and not ctx.resilient_parsing \
                and self.get_command(ctx, name) is None:
            prefix = f"{ctx.info_name} " if ctx.parent is not None else ""
            raise UnknownCommand(prefix + name)
        return super().resolve_command(ctx, args)

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except DockyardError as exc:
            click.echo(f"Error: {exc}", err=True)
            ctx.exit(exc.exit_code)


def run_command(ctx, kind, **fields):
    """
    Builds the command variant, dispatches it and prints its output.
    State is saved only after the command succeeded.
    """
    session: Session = ctx.find_object(Session)
    command = parse_command(kind, **fields)
    result = session.dispatcher.dispatch(command)
    for line in result.output:
        click.echo(line)
    session.save()
    if result.exit_code:
        ctx.exit(result.exit_code)


@click.group(cls=DockyardGroup)
@click.option('--file', '-f', default='docker-compose.yml', envvar='DOCKYARD_FILE',
              show_default=True, help='Compose file path')
@click.option('--project-name', '-p', envvar='DOCKYARD_PROJECT_NAME',
              help='Project name (defaults to the compose file directory name)')
@click.option('--state', envvar='DOCKYARD_STATE', type=click.Path(dir_okay=False),
              help='JSON file that keeps units and images between invocations')
@click.option('--log-level', default='WARNING', envvar='DOCKYARD_LOG_LEVEL',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              show_default=True)
@click.pass_context
def cli(ctx, file, project_name, state, log_level):
    """
    Dockyard - run Docker-style commands and compose descriptors.

    Units and images only live for one invocation unless --state is given.
    """
    configure_logging(log_level)
    ctx.obj = Session(descriptor_path=file, project_name=project_name, state_path=state)


@cli.command()
@click.option('--tag', '-t', help='Name and optionally a tag (name:tag)')
@click.argument('path', required=False)
@click.pass_context
def build(ctx, tag, path):
    """Build an image from a Dockerfile."""
    run_command(ctx, 'build', tag=tag, path=path)


@cli.command(context_settings=POSITIONAL_ONLY)
@click.option('--interactive', '-i', is_flag=True, help='Keep STDIN open')
@click.option('--tty', '-t', is_flag=True, help='Allocate a pseudo-TTY')
@click.option('--detach', '-d', is_flag=True, help='Run in background and print the unit ID')
@click.option('--name', help='Assign a name to the unit')
@click.option('--volume', '-v', 'volumes', multiple=True, help='Bind mount host:container')
@click.option('--publish', '-p', 'ports', multiple=True, help='Publish host:container')
@click.option('--env', '-e', 'environment', multiple=True, help='Set environment variables')
@click.argument('image', required=False)
@click.argument('command', nargs=-1)
@click.pass_context
def run(ctx, interactive, tty, detach, name, volumes, ports, environment, image, command):
    """Create and start a unit from an image."""
    run_command(ctx, 'run', image=image, name=name, detach=detach, interactive=interactive,
                tty=tty, volumes=volumes, ports=ports, environment=environment, command=command)


@cli.command()
@click.argument('image', required=False)
@click.pass_context
def pull(ctx, image):
    """Pull an image from the registry."""
    run_command(ctx, 'pull', image=image)


@cli.command()
@click.pass_context
def images(ctx):
    """List local images."""
    run_command(ctx, 'images')


@cli.command()
@click.option('--all', '-a', 'show_all', is_flag=True, help='Show all units (default shows just running)')
@click.pass_context
def ps(ctx, show_all):
    """List units."""
    run_command(ctx, 'ps', show_all=show_all)


def _unit_command(kind, help_text):
    @click.argument('unit', required=False)
    @click.pass_context
    def command(ctx, unit):
        run_command(ctx, kind, unit=unit)
    command.__doc__ = help_text
    return cli.command(name=kind)(command)


stop = _unit_command('stop', 'Stop a running unit.')
start = _unit_command('start', 'Start a created or stopped unit, or resume a paused one.')
restart = _unit_command('restart', 'Restart a unit.')
pause = _unit_command('pause', 'Pause a running unit.')
rm = _unit_command('rm', 'Remove a created or stopped unit.')
logs = _unit_command('logs', 'Fetch the logs of a unit.')


@cli.command()
@click.argument('image', required=False)
@click.pass_context
def rmi(ctx, image):
    """Remove a local image."""
    run_command(ctx, 'rmi', image=image)


@cli.command(name='exec', context_settings=POSITIONAL_ONLY)
@click.argument('unit', required=False)
@click.argument('command', nargs=-1)
@click.pass_context
def exec_(ctx, unit, command):
    """Run a command in a running unit."""
    run_command(ctx, 'exec', unit=unit, command=command)


@cli.group(cls=DockyardGroup)
def compose():
    """Work with the services of the compose file."""


@compose.command()
@click.option('--detach', '-d', is_flag=True, help='Do not print logs after starting')
@click.argument('services', nargs=-1)
@click.pass_context
def up(ctx, detach, services):
    """Create and start services in dependency order."""
    run_command(ctx, 'compose up', detach=detach, services=services)


@compose.command()
@click.pass_context
def down(ctx):
    """Stop and remove the project's units."""
    run_command(ctx, 'compose down')


def main():
    """
    Main entry point for the CLI.
    """
    cli(prog_name='dockyard')


if __name__ == '__main__':
    main()
