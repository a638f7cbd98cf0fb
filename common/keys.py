"""
Key names shared by the Safety Gate and the Controller.
Spoken / planner key names are normalised to pyautogui's vocabulary.
"""

# Spoken / planner key names -> pyautogui key names
KEY_MAP = {
    "ctrl": "ctrl",
    "control": "ctrl",
    "cmd": "command",
    "command": "command",
    "alt": "alt",
    "option": "alt",
    "shift": "shift",
    "win": "win",
    "windows": "win",
    "super": "win",
    "enter": "enter",
    "return": "enter",
    "tab": "tab",
    "escape": "esc",
    "esc": "esc",
    "space": "space",
    "spacebar": "space",
    "backspace": "backspace",
    "delete": "delete",
    "del": "delete",
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
    "page up": "pageup",
    "page down": "pagedown",
    "home": "home",
    "end": "end",
}


def map_key(key: str) -> str:
    """Translate a key name to pyautogui's vocabulary (unknown names pass through lower-cased)."""
    normalized = key.strip().lower()
    return KEY_MAP.get(normalized, normalized)
