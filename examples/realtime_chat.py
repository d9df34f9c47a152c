import asyncio
import os
import sys

from agnost import create_client


async def main() -> None:
    base_url = os.getenv("AGNOST_BASE_URL")
    api_key = os.getenv("AGNOST_API_KEY")
    if not base_url or not api_key:
        print("Error: AGNOST_BASE_URL and AGNOST_API_KEY environment variables must be set")
        return

    channel = sys.argv[1] if len(sys.argv) > 1 else "lobby"
    client = create_client(base_url, api_key, {"realtime": {"echo_messages": False}})
    realtime = client.realtime

    realtime.on("chat", lambda event: print(f"[{event.channel}] {event.message}"))
    realtime.on_join(lambda event: print(f"{event.message.id} joined {event.channel}"))
    realtime.on_leave(lambda event: print(f"{event.message.id} left {event.channel}"))
    realtime.on_connection_change(lambda state: print(f"Connection: {state}"))
    realtime.on_error(lambda error: print(f"Error: {error}"))

    # the join is buffered until the connection is up
    await realtime.join(channel)
    result = await realtime.connect()
    if result.errors is not None:
        print(f"Could not connect: {result.errors.items[0].message}")
        return

    print(f"Chatting in '{channel}', type a message and press enter (Ctrl+D to quit)")
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            await realtime.send(channel, "chat", {"text": line.rstrip()})
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
