from __future__ import annotations


class ChatBridgeError(Exception):
    """Base for failures that end one command and are shown to the caller."""

    user_message = "Something went wrong while handling that command."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.user_message)
        self.detail = detail


class ConsentRequired(ChatBridgeError):
    user_message = "Please agree to the privacy policy with /eula first."


class NoDefaultModel(ChatBridgeError):
    user_message = "No default model is set for this server. Set one with `/setmodel`."


class AttachmentTooLarge(ChatBridgeError):
    user_message = "The attached file is larger than 1GB."


class AttachmentProcessingFailed(ChatBridgeError):
    user_message = "Something went wrong while processing the attached file."


class BackendUnavailable(ChatBridgeError):
    user_message = "Could not reach the model backend. Is it running?"


class BackendError(ChatBridgeError):
    user_message = "Something went wrong while talking to the LLM."


class BackendTimeout(ChatBridgeError):
    user_message = "The request timed out before the model answered. Try again."


class StorePersistFailed(ChatBridgeError):
    user_message = "The reply could not be saved to this channel's memory."


class EmptyPrompt(ChatBridgeError):
    user_message = "Send a prompt or attach a file."
