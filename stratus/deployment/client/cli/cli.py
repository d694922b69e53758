import logging
import os
from typing import Optional

import click

from stratus.deployment.client import __version__ as STRATUS_VERSION
from stratus.deployment.common.config.config import Config
from stratus.deployment.common.deploy.builder import BuildError, Builder
from stratus.deployment.common.deploy.describe import describe_template
from stratus.deployment.common.deploy.provisioner import ProvisionError, Provisioner
from stratus.deployment.common.deploy.status import StatusReporter
from stratus.deployment.common.factories.builder_factory import BuilderFactory

LOG_LEVEL_CHOICES = ["debug", "info", "warning", "error"]


def _create_config(ctx: click.Context) -> Config:
    factory: BuilderFactory = ctx.obj["factory"]
    try:
        config = factory.create_config_obj()
    except RuntimeError as e:
        raise click.ClickException(str(e)) from e
    # --level overrides the log_level of the project config
    level = ctx.obj["level"]
    if level is not None:
        config.project_config["log_level"] = level
    else:
        level = config.log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO), format="%(levelname)s %(name)s: %(message)s"
    )
    return config


# Main CLI functions
@click.group()
@click.option("--project-dir", "-p", help="The project directory.")
@click.option(
    "--level",
    "-l",
    type=click.Choice(LOG_LEVEL_CHOICES),
    default=None,
    help="Log level of the build and of the deployed functions, defaults to log_level of the project config.",
)
@click.pass_context
def cli(ctx: click.Context, project_dir: Optional[str], level: Optional[str]) -> None:
    if project_dir is None:
        project_dir = os.getcwd()
    elif not os.path.isabs(project_dir):
        project_dir = os.path.abspath(project_dir)
    ctx.ensure_object(dict)
    ctx.obj["project_dir"] = project_dir
    ctx.obj["level"] = level
    ctx.obj["factory"] = BuilderFactory(project_dir)
    os.chdir(project_dir)


def _create_builder(ctx: click.Context) -> tuple[Config, Builder]:
    factory: BuilderFactory = ctx.obj["factory"]
    config = _create_config(ctx)
    return config, factory.create_builder(config=config)


@cli.command("build", help="Build the service and write its CloudFormation template.")
@click.option("--noop", is_flag=True, help="Build without looking up remote resources.")
@click.option("--build-id", "-b", help="The build identifier, generated when omitted.")
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), help="The template file to write.")
@click.pass_context
def build(ctx: click.Context, noop: bool, build_id: Optional[str], output: Optional[str]) -> None:
    _, builder = _create_builder(ctx)
    try:
        if output is not None:
            with open(output, "w", encoding="utf-8") as template_writer:
                build_state = builder.build(noop=noop, build_id=build_id, template_writer=template_writer)
        else:
            build_state = builder.build(noop=noop, build_id=build_id)
    except BuildError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Built {build_state.userdata.service_name} ({build_state.userdata.build_id})")
    click.echo(f"Code archive: {build_state.context.code_archive_path}")
    if output is not None:
        click.echo(f"Template: {output}")


@cli.command("provision", help="Build the service and provision its stack.")
@click.option("--s3-bucket", "-s", required=True, help="The bucket the artifacts are uploaded to.")
@click.option("--noop", is_flag=True, help="Build without uploading artifacts or provisioning the stack.")
@click.option("--build-id", "-b", help="The build identifier, generated when omitted.")
@click.option("--pipeline-environment", "-e", help="The pipeline environment whose values are provisioned.")
@click.pass_context
def provision(
    ctx: click.Context, s3_bucket: str, noop: bool, build_id: Optional[str], pipeline_environment: Optional[str]
) -> None:
    factory: BuilderFactory = ctx.obj["factory"]
    config, builder = _create_builder(ctx)
    provisioner = Provisioner(builder, factory.create_remote_client(config))
    try:
        stack = provisioner.provision(
            s3_bucket, noop=noop, build_id=build_id, pipeline_environment=pipeline_environment
        )
    except (BuildError, ProvisionError) as e:
        raise click.ClickException(str(e)) from e
    if stack is None:
        click.echo(f"Skipped provisioning of {config.service_name} (noop)")
    else:
        click.echo(f"Provisioned {config.service_name}: {stack.get('StackStatus')}")


@cli.command("status", help="Report the status of the provisioned stack.")
@click.option("--redact", is_flag=True, help="Redact the account id from the report.")
@click.pass_context
def status(ctx: click.Context, redact: bool) -> None:
    factory: BuilderFactory = ctx.obj["factory"]
    config = _create_config(ctx)
    reporter = StatusReporter(factory.create_remote_client(config))
    for line in reporter.report(config.service_name, redact=redact):
        click.echo(line)


@cli.command("describe", help="Render the service template as a Graphviz DOT graph.")
@click.option(
    "--out", "-o", required=True, type=click.Path(dir_okay=False, writable=True), help="The DOT file to write."
)
@click.pass_context
def describe(ctx: click.Context, out: str) -> None:
    _, builder = _create_builder(ctx)
    try:
        build_state = builder.build(noop=True)
    except BuildError as e:
        raise click.ClickException(str(e)) from e
    with open(out, "w", encoding="utf-8") as f:
        f.write(describe_template(build_state.context.template, build_state.userdata.service_name))
    click.echo(f"Wrote {out}")


@cli.command("version", help="Print the version of stratus.")
def version() -> None:
    click.echo(STRATUS_VERSION)


def main() -> None:
    cli(obj={})  # pylint: disable=no-value-for-parameter


__version__ = STRATUS_VERSION
