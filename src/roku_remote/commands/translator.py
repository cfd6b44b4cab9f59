"""
Command vocabulary: abstract remote buttons to ECP tokens
"""

from dataclasses import dataclass
from typing import Dict, List

from ..errors import UnsupportedCommandError

KEYPRESS = "keypress"
LAUNCH = "launch"


@dataclass(frozen=True)
class CommandToken:
    """A keypress key or an application id, plus the ECP path it is sent to"""
    kind: str
    value: str

    @property
    def path(self) -> str:
        return f"{self.kind}/{self.value}"


def _key(value: str) -> CommandToken:
    return CommandToken(KEYPRESS, value)


def _app(app_id: int) -> CommandToken:
    return CommandToken(LAUNCH, str(app_id))


COMMAND_MAP: Dict[str, CommandToken] = {
    "power": _key("Power"),
    "home": _key("Home"),
    "back": _key("Back"),
    "up": _key("Up"),
    "down": _key("Down"),
    "left": _key("Left"),
    "right": _key("Right"),
    "ok": _key("Select"),
    "select": _key("Select"),
    "volume_up": _key("VolumeUp"),
    "volume_down": _key("VolumeDown"),
    "volume_mute": _key("VolumeMute"),
    "play": _key("Play"),
    "pause": _key("Play"),  # ECP has a single play/pause toggle
    "replay": _key("InstantReplay"),
    "rewind": _key("Rev"),
    "forward": _key("Fwd"),
    "voice": _key("Search"),
    "search": _key("Search"),
    "options": _key("Info"),
    "info": _key("Info"),
    # Application shortcuts
    "netflix": _app(12),
    "disney": _app(529),
    "appletv": _app(551728),
    "paramount": _app(31440),
}


def translate(command: str) -> CommandToken:
    """Map a command name to its token; raises UnsupportedCommandError for unknown names"""
    if not isinstance(command, str):
        raise UnsupportedCommandError(repr(command))
    token = COMMAND_MAP.get(command.strip().lower())
    if token is None:
        raise UnsupportedCommandError(command)
    return token


def supported_commands() -> List[str]:
    return sorted(COMMAND_MAP)
