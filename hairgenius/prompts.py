from .schemas import StyleOption


def get_style_prompt(style: StyleOption) -> str:
    return f"Change hair to {style.prompt}"


def get_refine_prompt(style: StyleOption, color: StyleOption) -> str:
    return f"Change hair to {style.prompt}, dyed {color.prompt}"


def get_edit_instruction(prompt: str) -> str:
    return (
        "Edit this image to change the person's hairstyle. "
        f"{prompt}. "
        "Keep the face and background consistent, only change the hair. "
        "High quality, photorealistic."
    )


def get_reference_edit_instruction(prompt: str) -> str:
    return (
        "Edit the first image. Change the person's hairstyle to match the hairstyle "
        "shown in the second image. "
        f"{prompt}. "
        "Keep the face and background of the first image consistent. "
        "High quality, photorealistic."
    )
