"""
Interactive console chat with long-term memory.

Usage:
    python -m semantic_memory.main [owner_id]

Commands:
    /remember <text>            store an explicit memory
    /recall <query> [#category] look up memories
    /setprompt [text]           set (or reset) your custom prompt
    /setcontext <n>             keep n messages of context (2-20)
    /reset                      forget the current conversation
    /clearmemories              delete everything remembered about you
    /quit                       exit
"""

import asyncio
import sys

from .config import config
from .memory.base import MEMORY_CATEGORIES
from .service import MemoryService, create_memory_service

PROMPT = "you> "


async def handle_line(service: MemoryService, owner_id: str, line: str) -> list[str]:
    """Run one console line (command or chat message) and return the output lines."""
    line = line.strip()
    if not line:
        return []

    if not line.startswith("/"):
        return await service.handle_message(owner_id, line)

    command, _, arg = line.partition(" ")
    command = command.lower()
    arg = arg.strip()

    if command == "/remember":
        return [await service.remember(owner_id, arg)]

    if command == "/recall":
        category = None
        words = arg.split()
        if words and words[-1].startswith("#") and words[-1][1:] in MEMORY_CATEGORIES:
            category = words[-1][1:]
            arg = " ".join(words[:-1])
        return [await service.recall(owner_id, arg, category=category)]

    if command == "/setprompt":
        return [await service.set_prompt(owner_id, arg or None)]

    if command == "/setcontext":
        try:
            length = int(arg)
        except ValueError:
            return ["Usage: /setcontext <number between 2 and 20>"]
        return [await service.set_context_length(owner_id, length)]

    if command == "/reset":
        return [await service.reset_conversation(owner_id)]

    if command == "/clearmemories":
        return [await service.clear_memories(owner_id)]

    return [f"Unknown command: {command}"]


async def run_chat(owner_id: str) -> bool:
    """
    Run the console chat loop until /quit or EOF.

    Returns:
        True if the session ended normally.
    """
    logger = config.setup_logging()

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return False

    service = await create_memory_service(config)
    logger.info(f"Chat session started for owner {owner_id}")

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, PROMPT)
            except EOFError:
                break

            if line.strip().lower() in ("/quit", "/exit"):
                break

            for chunk in await handle_line(service, owner_id, line):
                print(f"{config.conversation.assistant_name}> {chunk}")
    finally:
        await service.close()

    return True


def main():
    """Entry point for the application."""
    owner_id = sys.argv[1] if len(sys.argv) > 1 else "local"

    try:
        success = asyncio.run(run_chat(owner_id))
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\nGoodbye!")
        sys.exit(130)
    except Exception as e:
        print(f"\nFatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
