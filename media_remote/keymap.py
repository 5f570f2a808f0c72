"""
Key tables for Media Remote.

Names sent by clients are mapped to xdotool keysyms here rather than in
branching code, so a config file can override any entry.
"""

from typing import Dict, Mapping, Optional


# send_key names (matched case-insensitively) -> xdotool keysym
KEY_MAP: Dict[str, str] = {
    "space": "space",
    "enter": "Return",
    "return": "Return",
    "escape": "Escape",
    "esc": "Escape",
    "up": "Up",
    "down": "Down",
    "left": "Left",
    "right": "Right",
    "backspace": "BackSpace",
    "delete": "Delete",
    "tab": "Tab",
    "home": "Home",
    "end": "End",
    "pageup": "Page_Up",
    "pagedown": "Page_Down",
    "shift": "shift",
    "ctrl": "ctrl",
    "control": "ctrl",
    "alt": "alt",
    "option": "alt",
    "cmd": "super",
    "meta": "super",
    "f1": "F1",
    "f2": "F2",
    "f3": "F3",
    "f4": "F4",
    "f5": "F5",
    "f6": "F6",
    "f7": "F7",
    "f8": "F8",
    "f9": "F9",
    "f10": "F10",
    "f11": "F11",
    "f12": "F12",
}

# Media actions use player shortcut keys (space / j / k / l)
MEDIA_KEYS: Dict[str, str] = {
    "play_pause": "space",
    "media_previous": "j",
    "media_stop": "k",
    "media_next": "l",
}

# Hardware keys handled by the desktop environment
SYSTEM_KEYS: Dict[str, str] = {
    "volume_up": "XF86AudioRaiseVolume",
    "volume_down": "XF86AudioLowerVolume",
    "volume_mute": "XF86AudioMute",
    "brightness_up": "XF86MonBrightnessUp",
    "brightness_down": "XF86MonBrightnessDown",
}

# Modifier names -> keysym
MODIFIER_KEYS: Dict[str, str] = {
    "shift": "shift",
    "ctrl": "ctrl",
    "control": "ctrl",
    "alt": "alt",
    "option": "alt",
    "cmd": "super",
    "meta": "super",
}

# Names that share one physical modifier
MODIFIER_ALIASES: Dict[str, str] = {
    "alt": "option",
    "option": "alt",
    "ctrl": "control",
    "control": "ctrl",
    "cmd": "meta",
    "meta": "cmd",
}

MODIFIER_STATE_NAMES = ("cmd", "shift", "alt", "option", "ctrl", "control")


class KeyMap:
    """Resolved key tables with config overrides applied."""

    def __init__(
        self,
        overrides: Optional[Mapping[str, str]] = None,
        media: Optional[Mapping[str, str]] = None,
    ):
        self.keys = dict(KEY_MAP)
        for name, keysym in (overrides or {}).items():
            self.keys[str(name).lower()] = str(keysym)

        self.media = dict(MEDIA_KEYS)
        self.media.update({str(k): str(v) for k, v in (media or {}).items()})

        self.system = dict(SYSTEM_KEYS)

    def resolve(self, name: str) -> Optional[str]:
        """
        Translate a send_key name to a keysym.

        Returns None for single characters not in the table; those are typed
        as text instead of pressed as keys.
        """
        keysym = self.keys.get(name.lower())
        if keysym is not None:
            return keysym
        if len(name) == 1:
            return None
        raise KeyError(name)

    def media_key(self, action: str) -> str:
        return self.media[action]

    def system_key(self, action: str) -> str:
        return self.system[action]


def modifier_keysym(name: str) -> Optional[str]:
    return MODIFIER_KEYS.get(name.lower())
