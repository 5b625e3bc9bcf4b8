from pathlib import Path

import click
import tomli_w

from .agent.protocol import (
    AgentNotAuthenticated,
    AgentNotFound,
    AgentProtocolError,
    AgentResponseError,
    AgentStartupError,
)
from .agent.service import AgentService
from .harness.errors import ActionDispatchError, LensWaitError
from .harness.fixture import STARTUP_GRACE, AgentFixture
from .lenses.channel import LensChannel
from .output.formatters import format_output, snapshot_result, status_result
from .utils.config import (
    configure_logging,
    get_access_token,
    get_config_path,
    get_setting,
    load_config,
)

HARNESS_ERRORS = (
    LensWaitError,
    ActionDispatchError,
    AgentStartupError,
    AgentNotFound,
    AgentNotAuthenticated,
    AgentProtocolError,
    AgentResponseError,
)


class OrderedGroup(click.Group):
    def __init__(self, *args, commands_order: list[str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.commands_order = commands_order or []

    def list_commands(self, ctx):
        commands = super().list_commands(ctx)
        if self.commands_order:
            ordered = [c for c in self.commands_order if c in commands]
            remaining = [c for c in commands if c not in self.commands_order]
            return ordered + remaining
        return commands


CLI_HELP = """\
lensprobe drives a code-intelligence agent the way an editor would: it starts
the agent, opens a document, runs a command and waits for the code lenses the
agent shows in response.

`lensprobe run ACTION EXPECTED...` runs ACTION and waits until every EXPECTED
lens command is shown. Without EXPECTED it waits for the lenses to disappear.
An error lens fails the run immediately.

See `lensprobe COMMAND --help` for more documentation and command-specific options.
"""


@click.group(
    cls=OrderedGroup,
    commands_order=["run", "status", "config"],
    help=CLI_HELP,
    context_settings={"help_option_names": ["-h", "--help"], "max_content_width": 120},
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(ctx, json_output):
    ctx.ensure_object(dict)
    ctx.obj["json"] = json_output


def _output_format(ctx) -> str:
    return "json" if ctx.obj.get("json") else "plain"


def _load_config_with_logging():
    config = load_config()
    configure_logging(get_setting(config, "agent", "log_level"))
    return config


@cli.command("run")
@click.argument("action")
@click.argument("expected", nargs=-1)
@click.option(
    "-w", "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace root the agent is started in",
)
@click.option(
    "-f", "--file", "document",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Document to open before running the action",
)
@click.option("-t", "--timeout", type=float, help="Seconds to wait for the lenses")
@click.option("--wait-edit", is_flag=True, help="Afterwards, poll until the edit's accept lens is shown")
@click.pass_context
def run(ctx, action, expected, workspace, document, timeout, wait_edit):
    """Run ACTION and wait for the EXPECTED lens commands.

    \b
    Examples:
      lensprobe run cody.documentCodeAction cody.fixup.codelens.accept -f src/Foo.java
      lensprobe run cody.fixup.codelens.accept -f src/Foo.java   # wait for clean state
    """
    config = _load_config_with_logging()
    if timeout is not None:
        config.setdefault("testing", {})["async_wait_timeout"] = timeout

    fixture = AgentFixture(workspace, document=document, config=config)
    try:
        with fixture:
            snapshot = fixture.run_and_wait_for_lenses(action, *expected)
            if wait_edit:
                fixture.wait_for_successful_edit()
                snapshot = fixture.lenses()
    except TimeoutError:
        raise click.ClickException(f"Agent did not answer within {fixture.timeout}s")
    except HARNESS_ERRORS as e:
        raise click.ClickException(str(e))

    click.echo(format_output(snapshot_result(snapshot, fixture.document_uri), _output_format(ctx)))


@cli.command("status")
@click.option(
    "-w", "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace root the agent is started in",
)
@click.pass_context
def status(ctx, workspace):
    """Start the agent and print its authentication status."""
    config = _load_config_with_logging()
    service = AgentService(workspace, LensChannel(), config)
    startup_timeout = float(get_setting(config, "agent", "startup_timeout"))
    request_timeout = float(get_setting(config, "agent", "request_timeout"))

    try:
        service.start_agent(
            get_setting(config, "credentials", "endpoint"),
            get_access_token(config),
        ).result(timeout=startup_timeout + STARTUP_GRACE)
        auth_status = service.status().result(timeout=request_timeout)
    except TimeoutError:
        raise click.ClickException("Unable to start agent in a timely fashion")
    except HARNESS_ERRORS as e:
        raise click.ClickException(str(e))
    finally:
        stopping = service.stop_agent()
        if stopping is not None:
            stopping.result(timeout=request_timeout)
        service.dispose()

    click.echo(format_output(status_result(auth_status), _output_format(ctx)))


@cli.command("config")
def config():
    """Print config file location and contents."""
    config_path = get_config_path()
    click.echo(f"Config file: {config_path}")
    click.echo()
    click.echo(tomli_w.dumps(load_config()))
