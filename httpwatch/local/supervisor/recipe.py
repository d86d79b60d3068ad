import sys
import enum
import shlex
import subprocess
from pathlib import Path
from dataclasses import dataclass
from typing import List, Tuple


class RecipeKind(enum.Enum):
    """The supported ways of launching a managed application."""
    DEV_SERVER = "dev_server"
    INTERPRETER = "interpreter"


@dataclass(frozen=True)
class LaunchRecipe:
    """
    The resolved command, arguments and working directory of one application.

    Recipes are built once from configuration and never change afterwards.
    """
    kind: RecipeKind
    working_directory: Path
    command: str
    arguments: Tuple[str, ...] = ()

    def build_args(self) -> List[str]:
        """
        Returns the platform-specific argument vector for subprocess.Popen.

        Dev-server commands such as `npm` are batch files on Windows, so they
        are run through `cmd.exe /c` there.
        """
        args = [self.command, *self.arguments]
        if self.kind is RecipeKind.DEV_SERVER and sys.platform == "win32":
            return ["cmd.exe", "/c", subprocess.list2cmdline(args)]
        return args

    def describe(self) -> str:
        """A readable one-line rendering of the command, for logs."""
        return " ".join(shlex.quote(part) for part in (self.command, *self.arguments))


def dev_server_recipe(working_directory: Path, command: str = "npm", arguments: str = "run dev") -> LaunchRecipe:
    """
    Builds a recipe that runs a development-server command inside a project directory.

    :param working_directory: The project directory the command runs in.
    :param command: The executable to run (e.g. 'npm').
    :param arguments: The argument string, split with shell rules (e.g. 'run dev').
    """
    return LaunchRecipe(
        kind=RecipeKind.DEV_SERVER,
        working_directory=Path(working_directory),
        command=command,
        arguments=tuple(shlex.split(arguments)),
    )


def interpreter_recipe(
    working_directory: Path,
    interpreter: str,
    host: str,
    port: int,
    module: str = "http.server",
) -> LaunchRecipe:
    """
    Builds a recipe that runs `<interpreter> -m <module> --bind <host> <port>`.

    :param working_directory: The directory served by the module.
    :param interpreter: Path of the interpreter executable.
    :param host: The address the server binds to.
    :param port: The port the server listens on.
    :param module: The server module to run.
    """
    return LaunchRecipe(
        kind=RecipeKind.INTERPRETER,
        working_directory=Path(working_directory),
        command=str(interpreter),
        arguments=("-m", module, "--bind", host, str(port)),
    )
