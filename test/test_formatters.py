import json

from lensprobe.agent.types import AuthStatus
from lensprobe.output.formatters import (
    format_output,
    lens_to_dict,
    snapshot_result,
    status_result,
)


class TestLensToDict:
    def test_with_command(self, lens):
        result = lens_to_dict(lens("cody.fixup.codelens.accept", "Accept", line=4))
        assert result == {
            "command": "cody.fixup.codelens.accept",
            "title": "Accept",
            "line": 5,
            "column": 0,
        }

    def test_without_command(self, lens):
        result = lens_to_dict(lens(None))
        assert result["command"] is None
        assert result["title"] == ""


class TestFormatSnapshot:
    def test_plain(self, lens):
        data = snapshot_result(
            [lens("cody.fixup.codelens.accept", "Accept"), lens("cody.fixup.codelens.undo", "Undo")],
            "file:///Foo.java",
        )
        output = format_output(data)

        assert output.splitlines()[0] == "file:///Foo.java"
        assert "1:0 cody.fixup.codelens.accept  Accept" in output
        assert "cody.fixup.codelens.undo  Undo" in output

    def test_plain_empty(self):
        assert format_output(snapshot_result([], "file:///Foo.java")) == "No lenses"

    def test_json(self, lens):
        data = snapshot_result([lens("a", "A")])
        parsed = json.loads(format_output(data, "json"))
        assert parsed["lenses"][0]["command"] == "a"
        assert parsed["uri"] is None


class TestFormatStatus:
    def test_authenticated(self):
        status = AuthStatus(status="authenticated", endpoint="https://sourcegraph.com", username="tester")
        assert format_output(status_result(status)) == "authenticated as tester on https://sourcegraph.com"

    def test_authenticated_flag(self):
        status = AuthStatus(authenticated=True, endpoint="https://sourcegraph.com")
        assert status_result(status)["status"] == "authenticated"

    def test_unauthenticated(self):
        status = AuthStatus(status="unauthenticated")
        assert format_output(status_result(status)) == "unauthenticated"


class TestFormatPlain:
    def test_error(self):
        assert format_output({"error": "boom"}) == "Error: boom"

    def test_none(self):
        assert format_output(None) == ""
