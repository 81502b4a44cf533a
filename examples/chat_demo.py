"""Minimal demonstration of a streaming conversation."""

import asyncio
import sys

from llm_core import create_provider


async def main(provider_name=None):
    async with create_provider(provider_name) as provider:
        provider.set_system_instruction("你是一个简洁的助手，用中文回答。")
        question = "用一句话解释什么是 HTTP 流式响应"
        print("User:", question)
        print("Assistant: ", end="", flush=True)
        await provider.send_turn_stream(question, lambda delta: print(delta, end="", flush=True))
        print()

        follow_up = "再举一个例子"
        reply = await provider.send_turn(follow_up)
        print("User:", follow_up)
        print("Assistant:", reply)


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
