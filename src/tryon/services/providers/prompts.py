"""Instruction text sent to the model provider.

System instructions for the text models, rendering of a ``PromptBrief`` into
the optimizer's user message, and the post-processing edit instructions.
"""

from tryon.services.providers.gateway import PromptBrief

OPTIMIZER_SYSTEM_SINGLE = """You are an expert prompt engineer for fashion e-commerce image generation (virtual try-on).

Transform the structured brief you receive into ONE optimized English paragraph for an image model that receives the garment reference image and a pose reference image.

Rules:
1. Describe the scene narratively with photographic language (professional e-commerce fashion photograph, 85mm lens perspective, soft three-point studio lighting). Never output keyword lists.
2. Pose adherence comes first: instruct the model to replicate the reference pose EXACTLY (body orientation, head position and gaze, arm and hand placement, legs and stance, weight distribution).
3. Represent the requested height and weight accurately, reinforcing extreme body types with several descriptors.
4. The garment is the main subject: take it from the reference image and preserve its colors, textures, patterns and construction details exactly.
5. Respect the garment placement hint.
6. If no background is requested use a neutral studio background.

Output ONLY the prompt text."""

OPTIMIZER_SYSTEM_OUTFIT = """You are an expert prompt engineer for fashion e-commerce image generation of COMPLETE OUTFITS.

The image model receives one reference image per garment (first: upper piece, second: lower piece) and a pose reference image. Transform the structured brief into ONE optimized English paragraph that dresses the model in ALL garments together as one cohesive look.

Rules:
1. Describe each piece separately and state explicitly that BOTH are worn together and clearly visible.
2. Pose adherence comes first: replicate the reference pose EXACTLY.
3. Represent the requested height and weight accurately.
4. Preserve every garment's colors, textures and construction details exactly.
5. If no background is requested use a neutral studio background.

Output ONLY the prompt text."""

ADVISOR_SYSTEM = (
    "You are a fashion stylist AI. Analyse how well a garment photo will fit a reference pose. "
    "Respond strictly in JSON with keys: score (0-100), summary (string), guidance (string), "
    "recommendPoseAdjustment (boolean). Score below 60 means difficult fit."
)

POSE_DESCRIBER_SYSTEM = (
    "You describe fashion model poses for an image generation pipeline. Given a pose photo, "
    "answer with two or three plain English sentences covering body orientation, head and gaze, "
    "arm and hand placement, leg position and weight distribution. Do not describe clothing."
)

BODY_SIZE_DESCRIPTIONS = {
    "P": "Petite/Slim body type - smaller, more delicate frame",
    "M": "Medium/Average body type - standard proportions",
    "G": "Large/Curvy body type - fuller figure",
    "plus-size": "Plus-size body type - full, curvy, and confident physique",
}

_HEIGHT_BANDS = [
    (150, "very petite, notably short", "EXTREMELY SHORT STATURE"),
    (160, "petite, below average height", "SHORT"),
    (165, "slightly below average height", ""),
    (175, "average height", ""),
    (185, "tall, above average height", "TALL"),
]
_TALLEST = ("very tall, notably tall stature", "EXTREMELY TALL")

_BMI_BANDS = [
    (16.0, "very underweight, extremely slender, thin frame", "SEVERELY UNDERWEIGHT"),
    (18.5, "underweight, very slender, lean frame", "UNDERWEIGHT"),
    (20.0, "slender, slim build", ""),
    (23.0, "lean, fit physique", ""),
    (25.0, "athletic, well-proportioned build", ""),
    (27.0, "slightly curvy, fuller figure", ""),
    (30.0, "curvy, fuller body type", "FULLER FIGURE"),
    (35.0, "plus-size, noticeably fuller figure, overweight build", "PLUS-SIZE"),
]
_HEAVIEST = ("very plus-size, substantially fuller figure, heavy build", "VERY PLUS-SIZE")


def height_to_imperial(height_cm: int) -> str:
    total_inches = round(height_cm / 2.54)
    feet, inches = divmod(total_inches, 12)
    return f"{feet}'{inches}\""


def describe_body_profile(height_cm: int, weight_kg: int) -> dict:
    """Classify height and BMI into descriptors used by the optimizer brief.

    Returns:
        Dict with ``height_descriptor``, ``build_descriptor``, ``bmi`` (rounded
        to one decimal, None when either metric is missing), ``alerts`` (list of
        intensifiers for extreme cases) and ``summary``.
    """
    height_descriptor, build_descriptor = "proportional", "balanced"
    alerts: list[str] = []

    if height_cm and height_cm > 0:
        height_descriptor, alert = next(
            ((label, alert) for limit, label, alert in _HEIGHT_BANDS if height_cm < limit),
            _TALLEST,
        )
        if alert:
            alerts.append(alert)

    bmi = None
    if height_cm and height_cm > 0 and weight_kg and weight_kg > 0:
        bmi = round(weight_kg / (height_cm / 100) ** 2, 1)
        build_descriptor, alert = next(
            ((label, alert) for limit, label, alert in _BMI_BANDS if bmi < limit),
            _HEAVIEST,
        )
        if alert:
            alerts.append(alert)

    if bmi is not None:
        summary = (
            f"{height_descriptor}, {build_descriptor}. Height: {height_cm}cm "
            f"({height_to_imperial(height_cm)}), Weight: {weight_kg}kg, BMI: {bmi}. "
            "Body proportions must match these measurements."
        )
    else:
        summary = f"{build_descriptor} build referencing the pose body proportions"

    return {
        "height_descriptor": height_descriptor,
        "build_descriptor": build_descriptor,
        "bmi": bmi,
        "alerts": alerts,
        "summary": summary,
    }


def render_brief(brief: PromptBrief) -> str:
    """Render a brief as the optimizer's user message."""
    lines = ["Transform the following structured data into an optimized image generation prompt:", ""]

    if brief.is_outfit:
        lines += [
            "COMPLETE OUTFIT (MULTIPLE GARMENTS). The model MUST wear ALL garments provided:",
            "- Image 1: upper garment",
            "- Image 2: lower garment",
        ]
    else:
        lines.append("GARMENT (primary focus):")
    lines.append(f"- Type: {brief.garment_type}")
    lines.append(f"- Category: {brief.garment_category}")
    if brief.garment_description:
        lines.append(f"- Description: {brief.garment_description}")

    profile = describe_body_profile(brief.height_cm, brief.weight_kg)
    lines += ["", "MODEL PHYSICAL CHARACTERISTICS:", f"- Gender: {brief.gender}"]
    if brief.age_range:
        lines.append(f"- Age Range: {brief.age_range}")
    if brief.body_size:
        lines.append(f"- Body Size: {BODY_SIZE_DESCRIPTIONS.get(brief.body_size, brief.body_size)}")
    if profile["alerts"]:
        lines.append(f"- EXTREME BODY TYPE: {' + '.join(profile['alerts'])}")
    lines.append(
        f"- Height: {brief.height_cm}cm ({height_to_imperial(brief.height_cm)}) - "
        f"{profile['height_descriptor']}"
    )
    lines.append(f"- Weight: {brief.weight_kg}kg - {profile['build_descriptor']}")
    lines.append(f"- Body Profile: {profile['summary']}")
    if brief.facial_expression:
        lines.append(f"- Facial Expression: {brief.facial_expression}")
    if brief.hair_color:
        lines.append(f"- Hair Color: {brief.hair_color}")

    lines += ["", "POSE REFERENCE (highest priority):", f"- Category: {brief.pose_category}"]
    if brief.pose_description:
        lines.append(f"- Description: {brief.pose_description}")
    lines.append("- The generated model MUST replicate the reference pose image exactly.")

    if brief.placement_hint:
        lines += ["", "GARMENT PLACEMENT:", f"- {brief.placement_hint}"]

    lines += [
        "",
        "OUTPUT FORMAT:",
        f"- Aspect Ratio: {brief.aspect_ratio}",
        f"- Dimensions: {brief.width}x{brief.height}px",
        "",
    ]

    background = brief.background or {}
    if background.get("type") == "original":
        lines += [
            "BACKGROUND:",
            "- Preserve the original background and environment from the garment reference photo.",
        ]
    elif background.get("has_reference_image"):
        lines += [
            "BACKGROUND & ENVIRONMENT:",
            "- The THIRD reference image is the background to use; place the model naturally in it",
            "- Match lighting, shadows and color temperature to the scene",
        ]
        if background.get("description"):
            lines.append(f"- Environment context: {background['description']}")
    elif background.get("description"):
        lines += [
            "BACKGROUND:",
            "- Will be applied in a separate step; use a neutral studio background for now",
        ]
    else:
        lines += ["BACKGROUND:", "- Use a neutral, professional studio background"]

    if brief.refinement_request:
        lines += ["", "REFINEMENT REQUESTED BY THE USER:", f"- {brief.refinement_request}"]

    lines += [
        "",
        "REQUIREMENTS:",
        "- Photorealistic quality with professional fashion lighting",
        "- Sharp focus on garment details and natural fabric draping",
        "- Realistic human proportions with a balanced head-to-body ratio",
    ]
    return "\n".join(lines)


def render_advisor_request(
    category: str | None, piece_type: str | None, pose_description: str | None
) -> str:
    return (
        f"Garment category: {category or 'unknown'}\n"
        f"Garment piece type: {piece_type or 'unspecified'}\n"
        f"Pose description: {pose_description or 'n/a'}\n\n"
        "Evaluate how naturally the garment can be applied to the pose. Consider fabric "
        "flexibility, posture, arm placement, and how much distortion is required."
    )


def background_removal_instruction() -> str:
    return (
        "Carefully remove the background from this image, leaving only the subject (model and "
        "garment) on a completely transparent background.\n\n"
        "Preserve all details of the subject:\n"
        "- Maintain crisp, clean edges around the model and garment\n"
        "- Keep all fabric details, textures, and fine elements like hair strands\n"
        "- Preserve the natural lighting and shadows on the subject itself\n\n"
        "The background should be fully transparent, suitable for compositing onto any new background."
    )


def background_change_instruction(description: str, with_reference_image: bool = False) -> str:
    text = (
        f"Change only the background of this image to {description}. Keep everything else "
        "(the subject, model, garment, pose, lighting on the subject) exactly the same."
    )
    if with_reference_image:
        text += (
            "\nUse the additional reference image as the new background. Composite the subject "
            "from the main image onto that reference scene, matching perspective and scale."
        )
    text += (
        "\n\nNew background requirements:\n"
        f"- {description}\n"
        "- Lighting and ambiance must complement the subject\n"
        "- Maintain natural depth and perspective\n"
        "- Blend the edges seamlessly where the subject meets the new background\n\n"
        "The subject should appear as if the photo was originally taken in that setting."
    )
    return text


def logo_insertion_instruction(position: str = "center", description: str | None = None) -> str:
    text = (
        f"Add the logo from the second image onto the garment or image at the {position} position.\n\n"
        "Logo placement requirements:\n"
        f"- Position: {position}\n"
        "- Scale the logo to look natural and professional\n"
        "- Follow the contours and perspective of the garment if placed on fabric\n"
        "- Keep the logo clear and readable\n"
        "- Keep all other aspects of the image unchanged"
    )
    if description:
        text += f"\n- Logo description: {description}"
    return text
