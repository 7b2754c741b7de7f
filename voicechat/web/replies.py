"""Canned replies for the chat demo's bot."""

GREETINGS = {"hi", "hello", "hey"}
FAREWELLS = {"bye", "goodbye"}

GREETING_REPLY = "Hello! How can I help you today?"
HOW_ARE_YOU_REPLY = "I'm doing well, thank you for asking! How can I assist you?"
FAREWELL_REPLY = "Goodbye! Have a great day!"
THANKS_REPLY = "You're welcome! Is there anything else I can help you with?"
HELP_REPLY = "I can help you with various tasks. Just let me know what you need!"
DEFAULT_REPLY = "I understand. What would you like to know more about?"


def reply_to(message: str) -> str:
    """Pick a reply for a non-empty chat message. Matching is case-insensitive."""
    text = message.strip().lower()

    if text in GREETINGS:
        return GREETING_REPLY
    if text == "how are you":
        return HOW_ARE_YOU_REPLY
    if text in FAREWELLS:
        return FAREWELL_REPLY
    if "thank you" in text or text == "thanks":
        return THANKS_REPLY
    if text == "help":
        return HELP_REPLY
    return DEFAULT_REPLY
