class WebSocketMessageRequests:
    GET_STATE = "get_state"
    USER_SUGGESTION = "user_suggestion"
    CLIENT_ERROR = "client_error"
    PREVIEW = "preview"


class WebSocketMessageResponses:
    AGENT_CONNECTED = "agent_connected"
    AGENT_STATE = "agent_state"
    BLUEPRINT_CHUNK = "blueprint_chunk"
    GENERATION_STARTED = "generation_started"
    GENERATION_COMPLETE = "generation_complete"
    USER_SUGGESTION_QUEUED = "user_suggestion_queued"
    CLIENT_ERROR_RECORDED = "client_error_recorded"
    DEPLOYMENT_COMPLETED = "deployment_completed"
    ERROR = "error"
