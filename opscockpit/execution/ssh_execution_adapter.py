from dataclasses import dataclass
from pathlib import Path

from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.execution.execution_adapter import ExecutionAdapter
from opscockpit.execution.local_execution_adapter import start_process_locally
from opscockpit.execution.process_handle import DEFAULT_READ_CHUNK_SIZE
from opscockpit.execution.process_handle import ProcessHandle

DEFAULT_SSH_BINARY = "/usr/bin/ssh"


@dataclass(frozen=True, eq=True)
class SshDestination:
    host: str
    user: None | str = None
    port: None | int = None
    private_key_path: None | Path = None
    additional_options: bool = True


def ssh_command(destination: SshDestination, ssh_binary: str) -> list[str]:
    options: list[str] = [ssh_binary]
    if destination.additional_options:
        options.extend(
            [
                inner
                for key, value in {
                    # never wait for a password prompt, there is no terminal
                    "BatchMode": "yes",
                    "CheckHostIP": "no",
                    "StrictHostKeyChecking": "no",
                    "PasswordAuthentication": "no",
                    "PreferredAuthentications": "publickey",
                    "ConnectTimeout": "10",
                }.items()
                for inner in ["-o", f"{key}={value}"]
            ]
        )
    if destination.user is not None:
        options.extend(["-l", destination.user])
    if destination.port is not None:
        options.extend(["-p", str(destination.port)])
    if destination.private_key_path is not None:
        options.extend(["-i", str(destination.private_key_path)])
    options.append(destination.host)
    return options


class SshExecutionAdapter(ExecutionAdapter):
    """
    Runs the command on another machine by prefixing it with an ssh invocation.

    ssh forwards the remote stdout/stderr and exits with the remote exit code (or
    255 if the connection itself failed), so the resulting handle behaves exactly
    like a local one.
    """

    def __init__(
        self,
        destination: SshDestination,
        ssh_binary: str = DEFAULT_SSH_BINARY,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._destination = destination
        self._ssh_binary = ssh_binary
        self._read_chunk_size = read_chunk_size

    def name(self) -> str:
        return f"ssh to {self._destination.host}"

    def remote_argv(self, spec: ExecutableSpec) -> list[str]:
        return ssh_command(self._destination, self._ssh_binary) + [spec.shell_quoted()]

    async def start(self, spec: ExecutableSpec) -> ProcessHandle:
        return await start_process_locally(
            self.remote_argv(spec), {}, self._read_chunk_size
        )
