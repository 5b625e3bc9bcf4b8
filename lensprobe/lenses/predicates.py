from ..agent.types import CodeLens, Snapshot
from ..harness.errors import ErrorLensShown

ERROR_LENS_COMMAND = "cody.fixup.codelens.error"
ACCEPT_LENS_COMMAND = "cody.fixup.codelens.accept"


def lens_command(lens: CodeLens) -> str | None:
    if lens.command is None:
        return None
    return lens.command.command


def find_lens(snapshot: Snapshot, command: str) -> CodeLens | None:
    for lens in snapshot:
        if lens_command(lens) == command:
            return lens
    return None


def has_lens(snapshot: Snapshot, command: str) -> bool:
    return find_lens(snapshot, command) is not None


class ExpectLenses:
    """Matches a snapshot containing every expected lens command.

    With no expected commands only an empty snapshot matches. A snapshot that
    shows the error lens raises ErrorLensShown, whatever else it contains.
    """

    def __init__(self, expected: tuple[str, ...], error_command: str | None = ERROR_LENS_COMMAND):
        self.expected = expected
        self.error_command = error_command

    @property
    def description(self) -> str:
        if not self.expected:
            return "no lenses"
        return "lenses [" + ", ".join(self.expected) + "]"

    def __call__(self, snapshot: Snapshot) -> bool:
        if self.error_command is not None:
            error = find_lens(snapshot, self.error_command)
            if error is not None:
                raise ErrorLensShown(error.command.title if error.command else "")

        if not self.expected:
            return not snapshot
        return all(has_lens(snapshot, expected) for expected in self.expected)

    def __repr__(self) -> str:
        return f"ExpectLenses({self.description})"


def expect_lenses(*expected: str, error_command: str | None = ERROR_LENS_COMMAND) -> ExpectLenses:
    return ExpectLenses(expected, error_command=error_command)
