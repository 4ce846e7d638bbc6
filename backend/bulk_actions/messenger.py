import logging

from django.contrib import messages
from django.contrib.messages import constants as message_constants

logger = logging.getLogger(__name__)


class Messenger:
    """
    Collects human readable diagnostics for display.
    Levels are django.contrib.messages levels, which line up with logging.
    """

    def __init__(self):
        self.messages = []

    def add_message(self, message, level=messages.INFO):
        message = str(message)
        self.messages.append((level, message))
        logger.log(level, message)

    def add_warning(self, message):
        self.add_message(message, messages.WARNING)

    def add_error(self, message):
        self.add_message(message, messages.ERROR)

    def as_list(self):
        return [
            {"level": message_constants.DEFAULT_TAGS.get(level, "info"), "message": message}
            for level, message in self.messages
        ]


class RequestMessenger(Messenger):
    """
    Also forwards every message to the request's message storage.
    """

    def __init__(self, request):
        super().__init__()
        self.request = request

    def add_message(self, message, level=messages.INFO):
        super().add_message(message, level)
        messages.add_message(self.request, level, str(message))
