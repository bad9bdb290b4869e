from switchboard.commands import EventHandler


async def execute(runtime, interaction):
    await runtime.dispatcher.on_interaction(interaction)


event = EventHandler(name="interaction_create", execute=execute)
