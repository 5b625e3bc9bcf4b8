import json

import pytest
from click.testing import CliRunner

from lensprobe.cli import cli
from lensprobe.utils.config import save_config

DOCUMENT = "src/main/java/Foo.java"


@pytest.fixture
def fake_agent_installed(fake_agent_config):
    save_config(fake_agent_config)
    return fake_agent_config


class TestCliCommands:
    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Commands:" in result.output
        assert "run" in result.output
        assert "status" in result.output
        assert "config" in result.output

    def test_commands_in_order(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        output = result.output.split("Commands:")[1]
        assert output.index("run") < output.index("status") < output.index("config")

    def test_run_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "ACTION" in result.output
        assert "--wait-edit" in result.output

    def test_config_command(self, isolated_config):
        runner = CliRunner()
        result = runner.invoke(cli, ["config"])
        assert result.exit_code == 0
        assert "Config file:" in result.output
        assert "async_wait_timeout = 20" in result.output


class TestRunCommand:
    def test_run_shows_lenses(self, java_project, fake_agent_installed):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "run", "cody.documentCodeAction", "cody.fixup.codelens.accept",
            "-w", str(java_project), "-f", str(java_project / DOCUMENT),
        ])
        assert result.exit_code == 0, result.output
        assert "Foo.java" in result.output
        assert "cody.fixup.codelens.accept  Accept" in result.output
        assert "cody.fixup.codelens.undo  Undo" in result.output

    def test_run_json(self, java_project, fake_agent_installed):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "--json", "run", "cody.documentCodeAction", "cody.fixup.codelens.undo",
            "-w", str(java_project), "-f", str(java_project / DOCUMENT),
        ])
        assert result.exit_code == 0, result.output
        parsed = json.loads(result.output)
        assert parsed["uri"].endswith("/Foo.java")
        assert [lens["command"] for lens in parsed["lenses"]] == [
            "cody.fixup.codelens.accept",
            "cody.fixup.codelens.undo",
        ]

    def test_run_wait_edit(self, java_project, fake_agent_installed):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "run", "cody.documentCodeAction", "cody.fixup.codelens.accept", "--wait-edit",
            "-w", str(java_project), "-f", str(java_project / DOCUMENT),
        ])
        assert result.exit_code == 0, result.output
        assert "cody.fixup.codelens.accept" in result.output

    def test_run_error_lens(self, java_project, fake_agent_installed):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "run", "test.failingEdit", "cody.fixup.codelens.accept",
            "-w", str(java_project), "-f", str(java_project / DOCUMENT),
        ])
        assert result.exit_code == 1
        assert "Error group shown: Edit failed to apply" in result.output

    def test_run_timeout(self, java_project, fake_agent_installed):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "run", "test.noSuchCommand", "cody.fixup.codelens.accept", "-t", "0.5",
            "-w", str(java_project), "-f", str(java_project / DOCUMENT),
        ])
        assert result.exit_code == 1
        assert "Error while awaiting after action test.noSuchCommand" in result.output

    def test_run_unanswered_request(self, java_project, fake_agent_config):
        fake_agent_config["agent"]["env"] = {"FAKE_AGENT_HANG": "testing/awaitPendingPromises"}
        save_config(fake_agent_config)

        runner = CliRunner()
        result = runner.invoke(cli, [
            "run", "cody.documentCodeAction", "-t", "0.5",
            "-w", str(java_project), "-f", str(java_project / DOCUMENT),
        ])
        assert result.exit_code == 1
        assert "Agent did not answer within 0.5s" in result.output
        assert "Traceback" not in result.output


class TestStatusCommand:
    def test_status(self, java_project, fake_agent_installed):
        runner = CliRunner()
        result = runner.invoke(cli, ["status", "-w", str(java_project)])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "authenticated as tester on https://sourcegraph.com"

    def test_status_json(self, java_project, fake_agent_installed):
        runner = CliRunner()
        result = runner.invoke(cli, ["--json", "status", "-w", str(java_project)])
        assert result.exit_code == 0, result.output
        parsed = json.loads(result.output)
        assert parsed["status"] == "authenticated"
        assert parsed["username"] == "tester"

    def test_status_agent_not_found(self, java_project, fake_agent_config):
        fake_agent_config["agent"]["command"] = ["lensprobe-no-such-agent-binary"]
        save_config(fake_agent_config)

        runner = CliRunner()
        result = runner.invoke(cli, ["status", "-w", str(java_project)])
        assert result.exit_code == 1
        assert "lensprobe-no-such-agent-binary" in result.output
