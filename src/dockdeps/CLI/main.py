"""
Command Line Interface for dockdeps.
"""
import logging

import click

from ..BUILDERS.context_builder import create_docker_tar_context
from ..MODELS.docker_artifact import DockerArtifact
from ..PARSERS.artifact_parser import ArtifactParser
from ..RESOLVERS.dependency_resolver import DependencyResolver
from ..errors import DockDepsError


def _parse_build_args(values):
    """KEY=VALUE sets a value; a bare KEY keeps the Dockerfile default."""
    build_args = {}
    for value in values:
        if '=' in value:
            k, v = value.split('=', 1)
            build_args[k] = v
        else:
            build_args[value] = None
    return build_args


def _given(ctx, name) -> bool:
    return ctx.get_parameter_source(name) == click.core.ParameterSource.COMMANDLINE


def _artifact(ctx, workspace, dockerfile, build_args, insecure_registries, config) -> DockerArtifact:
    if not config:
        artifact = DockerArtifact(workspace=workspace, dockerfile=dockerfile)
    else:
        artifact = ArtifactParser().parse(config)
        # Values given on the command line win over the artifact file
        if _given(ctx, 'workspace'):
            artifact.workspace = workspace
        if _given(ctx, 'dockerfile'):
            artifact.dockerfile = dockerfile
    artifact.build_args.update(_parse_build_args(build_args))
    artifact.insecure_registries.extend(insecure_registries)
    return artifact


def artifact_options(f):
    """Options shared by every command that resolves an artifact."""
    f = click.argument('workspace', default='.', type=click.Path(file_okay=False))(f)
    f = click.option('--file', '-f', 'dockerfile', default='Dockerfile', help='Dockerfile path, relative to the workspace')(f)
    f = click.option('--build-arg', 'build_args', multiple=True, help='Build argument as KEY=VALUE')(f)
    f = click.option('--insecure-registry', 'insecure_registries', multiple=True, help='Registry reached over plain HTTP')(f)
    f = click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False), help='Artifact YAML file')(f)
    return f


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """
    dockdeps - Dockerfile dependency resolver.

    Lists the workspace files a Dockerfile build depends on and packages
    them into a build context archive.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    ctx.ensure_object(dict)
    ctx.obj.setdefault('resolver', DependencyResolver())


@cli.command()
@artifact_options
@click.pass_context
def deps(ctx, workspace, dockerfile, build_args, insecure_registries, config):
    """Print the files the build depends on, one per line."""
    try:
        artifact = _artifact(ctx, workspace, dockerfile, build_args, insecure_registries, config)
        dependencies = ctx.obj['resolver'].resolve(
            artifact.workspace,
            artifact.dockerfile,
            artifact.build_args,
            artifact.insecure_registry_set,
        )
    except DockDepsError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    for dep in dependencies:
        click.echo(dep)


@cli.command()
@artifact_options
@click.option('--output', '-o', type=click.File('wb'), required=True, help='Tar file to write, - for stdout')
@click.pass_context
def context(ctx, workspace, dockerfile, build_args, insecure_registries, config, output):
    """Write the build context archive."""
    try:
        artifact = _artifact(ctx, workspace, dockerfile, build_args, insecure_registries, config)
        create_docker_tar_context(output, artifact, ctx.obj['resolver'])
    except DockDepsError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
