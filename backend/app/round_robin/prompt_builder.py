from app.round_robin.constants import MODEL_DISPLAY_NAMES, ROUND_ROBIN_SYSTEM_PROMPT


def display_name(model_id: str) -> str:
    return MODEL_DISPLAY_NAMES.get(model_id, model_id)


def build_system_prompt(model_id: str, topic: str, participants: list[str]) -> str:
    participant_list = ", ".join(display_name(p) for p in participants)
    prompt = ROUND_ROBIN_SYSTEM_PROMPT.replace("{model_name}", display_name(model_id)).replace(
        "{participant_list}", participant_list
    )
    return f"{prompt}\n\nTopic: {topic}"
