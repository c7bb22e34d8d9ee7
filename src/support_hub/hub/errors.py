"""Error taxonomy shared by the hub, the lifecycle manager and the HTTP layer."""


class SupportHubError(Exception):
    """Base class for all domain errors"""
    code = "internal_error"


class NotFoundError(SupportHubError):
    code = "not_found"


class SessionNotFoundError(NotFoundError):
    code = "session_not_found"

    def __init__(self, session_code: str):
        super().__init__("Session not found")
        self.session_code = session_code


class AgentNotFoundError(NotFoundError):
    code = "agent_not_found"

    def __init__(self, agent_id: str):
        super().__init__("Agent not found")
        self.agent_id = agent_id


class SOPNotFoundError(NotFoundError):
    code = "sop_not_found"

    def __init__(self, sop_id: str):
        super().__init__("SOP document not found")
        self.sop_id = sop_id


class QuickReplyNotFoundError(NotFoundError):
    code = "quick_reply_not_found"

    def __init__(self, reply_id: str):
        super().__init__("Quick reply not found")
        self.reply_id = reply_id


class MessageNotFoundError(NotFoundError):
    code = "message_not_found"

    def __init__(self, message_id: str):
        super().__init__("Message not found")
        self.message_id = message_id


class NoAgentAvailableError(SupportHubError):
    """No online agent can take a new session. Retryable, not a fault."""
    code = "no_agent_available"

    def __init__(self):
        super().__init__("No agents available")


class SessionClosedError(SupportHubError):
    code = "session_closed"

    def __init__(self, session_code: str, status: str):
        super().__init__(f"Session is {status}")
        self.session_code = session_code
        self.status = status


class InvalidCredentialsError(SupportHubError):
    code = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid credentials")


class InvalidRequestError(SupportHubError):
    code = "invalid_request"


class StoreError(SupportHubError):
    """Backing store failed; transient from the caller's point of view"""
    code = "store_error"


class DuplicateSessionCodeError(StoreError):
    code = "duplicate_session_code"

    def __init__(self, session_code: str):
        super().__init__(f"Session code {session_code} already exists")
        self.session_code = session_code
