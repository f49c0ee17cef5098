"""CSS custom properties derived from the configured theme colour."""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from feature_loader.core.user_settings import UserSettings

THEME_STYLE_ID = 'feature-loader-variables'

_HEX_RE = re.compile(r'^#?([0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')


@dataclass
class Rgba:
    r: int
    g: int
    b: int
    a: float = 1.0

    def to_css(self) -> str:
        alpha = round(self.a, 3)
        if alpha == int(alpha):
            alpha = int(alpha)
        return f"rgba({self.r},{self.g},{self.b},{alpha})"


def hex_to_rgba(value: str) -> Rgba:
    """Parse ``#rgb``, ``#rgba``, ``#rrggbb`` or ``#rrggbbaa``."""
    match = _HEX_RE.match(value.strip())
    if not match:
        raise ValueError(f"invalid hex colour {value!r}")
    digits = match.group(1)
    if len(digits) in (3, 4):
        digits = ''.join(ch * 2 for ch in digits)
    r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    a = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
    return Rgba(r, g, b, a)


class ColorProcessor:
    def __init__(self, hex_color: str):
        self.color = hex_to_rgba(hex_color)

    @property
    def brightness(self) -> float:
        c = self.color
        return 0.299 * c.r + 0.587 * c.g + 0.114 * c.b

    @property
    def is_bright(self) -> bool:
        return self.brightness > 186

    @property
    def foreground(self) -> str:
        return '#000' if self.is_bright else '#fff'

    @property
    def filter_invert(self) -> str:
        return 'invert(1)' if self.is_bright else 'invert(0)'


def build_theme_variables(user_settings: 'UserSettings') -> str:
    color = ColorProcessor(user_settings.custom_style_color)
    base = color.color
    styles: List[str] = [f"--theme-color:{user_settings.custom_style_color}"]
    for opacity in range(10, 100, 10):
        variant = Rgba(base.r, base.g, base.b, opacity / 100)
        styles.append(f"--theme-color-{opacity}:{variant.to_css()}")
    styles.append(f"--foreground-color:{color.foreground}")
    styles.append(f"--foreground-color-b:{hex_to_rgba(color.foreground + 'b').to_css()}")
    styles.append(f"--foreground-color-d:{hex_to_rgba(color.foreground + 'd').to_css()}")
    styles.append(f"--invert-filter:{color.filter_invert}")
    styles.append(f"--blur-background-opacity:{user_settings.blur_background_opacity}")
    styles.append(f"--custom-control-background-opacity:{user_settings.custom_control_background_opacity}")
    return f"html{{{';'.join(styles)}}}"
