from __future__ import annotations

from ...config import PROVIDER_TIMEOUT_SECONDS
from ...ranges import period_range
from ..context import HandlerContext
from ..rundown import RundownAggregator
from ..schemas import DailyRundownSlots


async def daily_rundown(ctx: HandlerContext, slots: DailyRundownSlots) -> None:
  providers = ctx.providers
  if providers.calendar is None and providers.tasks is None:
    ctx.require("tasks")
  period = period_range(slots.date or slots.period or "today", ctx.timezone, ctx.now)
  aggregator = RundownAggregator(providers.calendar, providers.tasks,
                                 timeout=PROVIDER_TIMEOUT_SECONDS)
  text = await aggregator.build_rundown(period, ctx.now)
  ctx.remember(last_action="daily_rundown", last_rundown_period=period.label)
  await ctx.reply(text)
