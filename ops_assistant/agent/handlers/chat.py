from __future__ import annotations

from ..context import HandlerContext
from ..schemas import GeneralChatSlots

DEFAULT_CHAT_REPLY = ("I'm here. I can create scheduling links, log or check time, "
                      "look at your calendar, manage Asana tasks, or give you a rundown.")


async def general_chat(ctx: HandlerContext, slots: GeneralChatSlots) -> None:
  await ctx.reply(ctx.classifier_response.strip() or DEFAULT_CHAT_REPLY)
