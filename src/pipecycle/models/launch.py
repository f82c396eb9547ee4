"""Launch record for the supervised child process."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class LaunchSpec(BaseModel):
    """How the supervisor starts (and restarts) its child."""

    argv: list[str] = Field(description="Argument vector passed to exec; argv[0] is the program.", min_length=1)
    source: Literal["command_line", "args_file"] = Field(
        description="Where the argument vector came from."
    )
    args_file: str | None = Field(
        default=None,
        description="Args file re-read before every respawn, if one is in use.",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def program(self) -> str:
        """Executable name or path."""
        return self.argv[0]
