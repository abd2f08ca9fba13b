from dataclasses import dataclass

from opscockpit.execution.dispatching_execution_adapter import (
    DispatchingExecutionAdapter,
)
from opscockpit.execution.execution_adapter import ExecutionAdapter
from opscockpit.execution.local_execution_adapter import LocalExecutionAdapter
from opscockpit.execution.process_handle import DEFAULT_READ_CHUNK_SIZE
from opscockpit.execution.ssh_execution_adapter import DEFAULT_SSH_BINARY
from opscockpit.execution.ssh_execution_adapter import SshDestination
from opscockpit.execution.ssh_execution_adapter import SshExecutionAdapter
from opscockpit.simple_uri import SimpleURIError
from opscockpit.simple_uri import parse_simple_uri


@dataclass(frozen=True, eq=True)
class LocalRemoteExecutionConfig:
    pass


@dataclass(frozen=True, eq=True)
class SshRemoteExecutionConfig:
    destination: SshDestination
    ssh_binary: str


def parse_remote_execution_config(
    s: str,
) -> LocalRemoteExecutionConfig | SshRemoteExecutionConfig:
    try:
        uri = parse_simple_uri(s)
    except SimpleURIError as e:
        raise ValueError(f"invalid remote execution simple URI: {e.message}")

    try:
        match uri.scheme:
            case "local":
                return LocalRemoteExecutionConfig()
            case "ssh":
                host = uri.string_parameter("host")
                if not host:
                    raise ValueError('invalid scheme for ssh: "host" is mandatory')
                additional_options = uri.bool_parameter("use-additional-ssh-options")
                ssh_binary = uri.string_parameter("ssh-binary")
                return SshRemoteExecutionConfig(
                    destination=SshDestination(
                        host=host,
                        user=uri.string_parameter("user"),
                        port=uri.int_parameter("port"),
                        private_key_path=uri.path_parameter("identity-file"),
                        additional_options=additional_options
                        if additional_options is not None
                        else True,
                    ),
                    ssh_binary=ssh_binary
                    if ssh_binary is not None
                    else DEFAULT_SSH_BINARY,
                )
            case _:
                raise ValueError(
                    f"invalid remote execution URI (invalid scheme {uri.scheme}): {s}"
                )
    except SimpleURIError as e:
        raise ValueError(f"invalid remote execution simple URI: {e.message}")


def create_execution_adapter(
    remote_config: LocalRemoteExecutionConfig | SshRemoteExecutionConfig,
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
) -> ExecutionAdapter:
    local = LocalExecutionAdapter(read_chunk_size=read_chunk_size)
    match remote_config:
        case LocalRemoteExecutionConfig():
            return DispatchingExecutionAdapter(local=local, remote=local)
        case SshRemoteExecutionConfig(destination=destination, ssh_binary=ssh_binary):
            return DispatchingExecutionAdapter(
                local=local,
                remote=SshExecutionAdapter(
                    destination, ssh_binary=ssh_binary, read_chunk_size=read_chunk_size
                ),
            )
