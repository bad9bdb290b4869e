from switchboard.commands import EventHandler


async def execute(runtime, message):
    await runtime.dispatcher.on_message(message)


event = EventHandler(name="message_create", execute=execute)
