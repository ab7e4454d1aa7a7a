"""Button custom ids understood by the bot.

Every component the bot posts carries one of these ids; ``parse_custom_id``
turns the id back into a typed action so the runtime can dispatch on the
action type instead of comparing strings.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class RegisterTeam:
    pass


@dataclass(slots=True, frozen=True)
class EditTeam:
    pass


@dataclass(slots=True, frozen=True)
class DeleteTeam:
    pass


@dataclass(slots=True, frozen=True)
class CheckIn:
    scrim_name: str


@dataclass(slots=True, frozen=True)
class TransferLobbyRole:
    lobby_number: int
    scrim_date: str


ComponentAction = RegisterTeam | EditTeam | DeleteTeam | CheckIn | TransferLobbyRole

ACTION_TYPES: tuple[type, ...] = (
    RegisterTeam,
    EditTeam,
    DeleteTeam,
    CheckIn,
    TransferLobbyRole,
)

_FIXED_IDS: dict[str, ComponentAction] = {
    "register_team": RegisterTeam(),
    "edit_team": EditTeam(),
    "delete_team": DeleteTeam(),
}
_CHECK_IN_PREFIX = "checkin_"
_TRANSFER_PREFIX = "transfer_lobby_"


def parse_custom_id(custom_id: str | None) -> ComponentAction | None:
    if not custom_id:
        return None
    fixed = _FIXED_IDS.get(custom_id)
    if fixed is not None:
        return fixed
    if custom_id.startswith(_CHECK_IN_PREFIX):
        scrim_name = custom_id[len(_CHECK_IN_PREFIX) :]
        return CheckIn(scrim_name) if scrim_name else None
    if custom_id.startswith(_TRANSFER_PREFIX):
        lobby_raw, _, scrim_date = custom_id[len(_TRANSFER_PREFIX) :].partition("_")
        if not lobby_raw.isdigit() or not scrim_date:
            return None
        return TransferLobbyRole(int(lobby_raw), scrim_date)
    return None


def custom_id_for(action: ComponentAction) -> str:
    if isinstance(action, CheckIn):
        return f"{_CHECK_IN_PREFIX}{action.scrim_name}"
    if isinstance(action, TransferLobbyRole):
        return f"{_TRANSFER_PREFIX}{action.lobby_number}_{action.scrim_date}"
    for custom_id, fixed in _FIXED_IDS.items():
        if fixed == action:
            return custom_id
    raise ValueError(f"Unknown component action: {action!r}")


__all__ = [
    "ACTION_TYPES",
    "CheckIn",
    "ComponentAction",
    "DeleteTeam",
    "EditTeam",
    "RegisterTeam",
    "TransferLobbyRole",
    "custom_id_for",
    "parse_custom_id",
]
