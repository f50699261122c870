"""根据房间类型、设计风格和选项生成发给图像模型的提示词

生成结果是确定的：相同的输入永远得到相同的文本。
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ..schemas.restage import RestageOptions, SpaceType, TransformationMode


STRUCTURE_RULES = (
    'Do not make any structural changes to the room (do not add or remove walls, windows, doors, or permanent fixtures).',
    'Preserve the exact room layout and architectural features.',
)

DECORATIVE_RULES = {
    TransformationMode.FURNISH: 'Minimize or avoid adding decorative items like plants, vases, or animals.',
    TransformationMode.REDESIGN: 'Minimize decorative items like plants, vases, or animals.',
}

# 这些模式不涉及墙面和地板
SURFACE_LOCKED_MODES = {
    TransformationMode.EMPTY,
    TransformationMode.ENHANCE,
    TransformationMode.DAY_TO_DUSK,
}

MODE_INSTRUCTIONS = {
    TransformationMode.FURNISH: (
        "Professionally stage this empty {space} by adding furniture and decor in a {style} style. "
        "Create a high-end, aesthetically pleasing result suitable for a real estate listing with "
        "enhanced lighting and beautiful furniture placement."
    ),
    TransformationMode.EMPTY: (
        "Remove all furniture, decor, and movable items from this {space}. Show the empty room with "
        "clean walls and floors. Preserve all architectural features, windows, doors, and built-in fixtures."
    ),
    TransformationMode.REDESIGN: (
        "Redesign this {space} in a {style} style. Replace existing furniture and decor with new pieces "
        "that match the {style} aesthetic. Create a cohesive, professionally designed space suitable for "
        "real estate marketing."
    ),
    TransformationMode.ENHANCE: (
        "Enhance this {space} photo by improving lighting, color balance, and overall visual quality. "
        "Make the space look more appealing and professional for real estate marketing. Do not add, "
        "remove, or change any furniture or decor."
    ),
    TransformationMode.RENOVATE: (
        "Dramatically transform and renovate this {space} in a {style} style. Apply creative AI processing "
        "to completely reimagine the space with new furniture, enhanced lighting, and a fresh design. "
        "Create a stunning, high-end result that showcases the room's potential."
    ),
    TransformationMode.DAY_TO_DUSK: (
        "Convert this {space} to an evening/dusk scene. Add warm, ambient lighting with sunset or twilight "
        "tones. Make the space look cozy and inviting with appropriate evening lighting. Do not change "
        "furniture, decor, or room layout."
    ),
    TransformationMode.OUTDOOR: (
        "Add outdoor furniture and decor to this {space} in a {style} style. Create an inviting outdoor "
        "living space suitable for real estate marketing."
    ),
    TransformationMode.BLUE_SKY: (
        "Enhance this outdoor space photo by adding a beautiful blue sky with natural clouds. Improve "
        "overall lighting and make the space look more appealing. Do not change the space itself, "
        "furniture, or landscape."
    ),
}

MODE_RULES = {
    TransformationMode.ENHANCE: (
        'Do not add or remove any furniture or objects.',
        'Do not change the room layout or furniture placement.',
    ),
    TransformationMode.RENOVATE: (
        'CRITICAL: Keep all windows in their exact original positions - do not move, add, remove, or resize windows.',
        'CRITICAL: Keep all doors in their exact original positions - do not move, add, remove, or change doors.',
        'CRITICAL: Do not modify walls, ceiling, or floor layout.',
    ),
    TransformationMode.DAY_TO_DUSK: (
        'Do not change furniture or decor.',
    ),
    TransformationMode.OUTDOOR: (
        'Preserve all existing structures, buildings, and landscape features.',
    ),
    TransformationMode.BLUE_SKY: (
        'Do not change the outdoor space or furniture.',
    ),
}

KEEP_PAINT_RULE = 'Do not change the wall paint color.'
KEEP_FLOORING_RULE = 'Do not change the flooring material, color, or pattern.'


@dataclass(frozen=True)
class RestagePrompt:
    instruction: str
    rules: Tuple[str, ...]

    @property
    def text(self) -> str:
        return f"{self.instruction}\n\nIMPORTANT RULES: {' '.join(self.rules)}"

    def __str__(self) -> str:
        return self.text


def humanize_label(value) -> str:
    """living_room -> living room，Mid-century Modern -> mid-century modern"""
    if isinstance(value, Enum):
        value = value.value
    words = str(value or '').replace('_', ' ').split()
    return ' '.join(words).lower()


def _provided(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def build_prompt(room_label, design_style, options: Optional[RestageOptions] = None) -> RestagePrompt:
    options = options or RestageOptions()
    mode = TransformationMode.parse(options.transformation_mode)

    room_name = humanize_label(room_label)
    style_name = humanize_label(design_style)
    is_exterior = humanize_label(options.space_type) == SpaceType.EXTERIOR.value
    space_name = 'outdoor space' if is_exterior else room_name

    instruction = MODE_INSTRUCTIONS[mode].format(space=space_name, style=style_name)
    rules: List[str] = list(STRUCTURE_RULES)

    if options.block_decorative and mode in DECORATIVE_RULES:
        rules.append(DECORATIVE_RULES[mode])
    rules.extend(MODE_RULES.get(mode, ()))

    if mode not in SURFACE_LOCKED_MODES:
        if options.repaint:
            paint_color = _provided(options.paint_color)
            if paint_color:
                instruction += f" Repaint the walls a {paint_color} color."
            else:
                instruction += (
                    f" Repaint the walls with a new, stylish, and complementary color that fits the {style_name} theme."
                )
        else:
            rules.append(KEEP_PAINT_RULE)

        if options.change_flooring:
            material = humanize_label(options.flooring_material)
            instruction += f" Replace the flooring with new {material} that fits the {style_name} theme."
        elif options.update_flooring:
            instruction += f" Update the flooring with new, stylish flooring that fits the {style_name} theme."
        else:
            rules.append(KEEP_FLOORING_RULE)

    additional = _provided(options.additional_instructions)
    if additional:
        instruction += f' Also, follow these specific user instructions: "{additional}".'

    return RestagePrompt(instruction=instruction, rules=tuple(rules))
