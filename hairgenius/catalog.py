"""Static hairstyle and hair color catalog."""

from __future__ import annotations

from typing import Optional, Sequence

from .schemas import StyleOption

# Batch runs walk this list in order.
STYLES_LIST: tuple[StyleOption, ...] = (
    StyleOption(id="pixie", label="Pixie Cut", prompt="a short textured pixie cut", category="style"),
    StyleOption(id="bob", label="Classic Bob", prompt="a sleek chin-length bob", category="style"),
    StyleOption(id="lob", label="Long Bob", prompt="a shoulder-length lob with soft waves", category="style"),
    StyleOption(id="layers", label="Long Layers", prompt="long flowing layered hair", category="style"),
    StyleOption(id="curtain-bangs", label="Curtain Bangs", prompt="medium-length hair with curtain bangs", category="style"),
    StyleOption(id="buzz", label="Buzz Cut", prompt="a very short buzz cut", category="style"),
    StyleOption(id="curly", label="Natural Curls", prompt="voluminous natural curly hair", category="style"),
    StyleOption(id="braids", label="Box Braids", prompt="long box braids", category="creative"),
    StyleOption(id="mohawk", label="Mohawk", prompt="a bold spiked mohawk", category="creative"),
)

COLORS_LIST: tuple[StyleOption, ...] = (
    StyleOption(id="platinum", label="Platinum Blonde", prompt="platinum blonde", category="color"),
    StyleOption(id="honey", label="Honey Blonde", prompt="warm honey blonde", category="color"),
    StyleOption(id="auburn", label="Auburn", prompt="rich auburn red", category="color"),
    StyleOption(id="chestnut", label="Chestnut Brown", prompt="glossy chestnut brown", category="color"),
    StyleOption(id="jet-black", label="Jet Black", prompt="jet black", category="color"),
    StyleOption(id="pastel-pink", label="Pastel Pink", prompt="pastel pink", category="color"),
)


def _find(options: Sequence[StyleOption], option_id: str) -> Optional[StyleOption]:
    return next((option for option in options if option.id == option_id), None)


def find_style(style_id: str, styles: Sequence[StyleOption] = STYLES_LIST) -> Optional[StyleOption]:
    return _find(styles, style_id)


def find_color(color_id: str, colors: Sequence[StyleOption] = COLORS_LIST) -> Optional[StyleOption]:
    return _find(colors, color_id)
