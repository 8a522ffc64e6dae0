class MessageBus:
    """Routes a command or query object to the single handler registered for its type."""

    kind = "message"

    def __init__(self):
        self.handlers = {}

    def register_handler(self, message_type, handler):
        if message_type in self.handlers:
            raise ValueError(f"{message_type.__name__} already has a {self.kind} handler")
        self.handlers[message_type] = handler

    def handle(self, message):
        handler = self.handlers.get(type(message))
        if handler is None:
            raise LookupError(f"No handler registered for {self.kind} type: {type(message).__name__}")
        return handler.handle(message)


class QueryBus(MessageBus):
    kind = "query"


query_bus = QueryBus()
