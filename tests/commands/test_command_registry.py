import pytest

from opscockpit.commands.command_registry import CommandRegistry
from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.commands.command_registry import UnknownCommand
from opscockpit.jobs.job import JobKind


def _registry() -> CommandRegistry:
    return CommandRegistry(
        {
            "vm-status": ExecutableSpec(JobKind.LOCAL, "make", ("status",)),
            "docker-ps": ExecutableSpec(JobKind.REMOTE, "docker", ("ps", "-a")),
        }
    )


def test_resolve_known_key() -> None:
    spec = _registry().resolve("docker-ps")
    assert spec.kind == JobKind.REMOTE
    assert spec.argv() == ["docker", "ps", "-a"]
    assert spec.render() == "docker ps -a"


def test_resolve_unknown_key() -> None:
    with pytest.raises(UnknownCommand) as e:
        _registry().resolve("nope")
    assert e.value.message == "Unknown command: nope"


def test_registry_is_a_snapshot() -> None:
    commands = {"a": ExecutableSpec(JobKind.LOCAL, "true")}
    registry = CommandRegistry(commands)
    commands["b"] = ExecutableSpec(JobKind.LOCAL, "false")

    assert "b" not in registry
    assert len(registry) == 1
    assert list(registry.keys()) == ["a"]


def test_shell_quoting_for_remote_shells() -> None:
    spec = ExecutableSpec(JobKind.REMOTE, "echo", ("Simulating ssh command...container up.",))
    assert spec.shell_quoted() == "echo 'Simulating ssh command...container up.'"
