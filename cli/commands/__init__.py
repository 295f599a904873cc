"""
CLI command handlers.

Each handler takes (system, args, config, resolved); execute_command
looks the command name up in COMMANDS.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import argparse
    from config import SystemConfig
    from cli.system import RiskSimulatorSystem

from .simulate import execute_simulate

# name -> handler
COMMANDS = {
    'simulate': execute_simulate,
}


def execute_command(
    command: str,
    system: 'RiskSimulatorSystem',
    args: 'argparse.Namespace',
    config: 'SystemConfig',
    resolved: dict
) -> None:
    """
    Dispatch a parsed command to its handler.

    Args:
        command: Command name
        system: RiskSimulatorSystem instance
        args: Parsed command-line arguments
        config: System configuration
        resolved: Values computed by resolve_cli_config
    """
    handler = COMMANDS.get(command)
    if handler is None:
        raise ValueError(f"Unknown command: {command}")
    handler(system, args, config, resolved)


__all__ = [
    'execute_command',
    'execute_simulate',
    'COMMANDS',
]
