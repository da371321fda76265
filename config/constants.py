"""Application-wide constants."""

# Tool names the orchestrator treats specially
HANDOFF_TOOL_NAME = "transfer_to_support"

# Fixed message keys (see config/messages.yaml)
MESSAGE_KEYS = {
    "api_error": "apiError",
    "checking": "checking",
    "transferring": "transferring",
    "handoff": "handoff",
}

# Session attribute holding the inferred persona
PERSONA_ATTRIBUTE = "persona"
PERSONA_VALUES = ("male", "female")

# Calendar defaults for the demo appointment backend
CALENDAR_CONFIG = {
    "open_hour": 9,
    "close_hour": 18,
    "slot_minutes": 30,
    "working_days": [6, 0, 1, 2, 3],  # Sunday-Thursday (Python weekday numbers)
    "max_slots_returned": 6,
}

# Retrieval formatting
RAG_CONFIG = {
    "default_top_k": 3,
    "max_passage_chars": 500,
    "semantic_weight": 0.7,
    "keyword_weight": 0.3,
}
