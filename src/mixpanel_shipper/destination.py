"""Mixpanel destination facade.

`MixpanelDestination` is what the upstream dispatcher talks to: one public
coroutine per event type plus `dispatch`, which routes on `event.type`.
Every public call validates first, asks the planner for its steps and runs
them through `run_plan`:

* steps execute sequentially in plan order;
* the first failure is raised and the remaining steps are skipped;
* calls already completed are not undone.

Settings are read-only; no state is kept between calls.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Sequence, Union

from .mapping.routing import should_import
from .models.events import Alias, BaseEvent, Group, Identify, Page, Screen, SurfaceEvent, Track
from .models.mixpanel import CallResult, DestinationSettings
from .planner import (
    PRIMARY_STEP,
    Step,
    plan_alias,
    plan_group,
    plan_identify,
    plan_track,
    surface_tracks,
)
from .transport import Transport
from .validation import validate

logger = logging.getLogger(__name__)

__all__ = ["MixpanelDestination", "run_plan"]

AnyEvent = Union[Identify, Track, Page, Screen, Alias, Group]


async def run_plan(steps: Sequence[Step], transport: Transport) -> List[CallResult]:
    """Execute `steps` in order, stopping at the first failure."""
    results: List[CallResult] = []
    for index, step in enumerate(steps):
        request = step.build(results)
        try:
            results.append(await transport.send(request))
        except Exception:
            skipped = [s.name for s in steps[index + 1:]]
            logger.warning(
                "Step %s failed after %d completed call(s); skipped=%s",
                step.name,
                len(results),
                skipped,
            )
            raise
    return results


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MixpanelDestination:
    name = "Mixpanel"

    def __init__(
        self,
        settings: DestinationSettings,
        transport: Transport,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.transport = transport
        self._clock = clock

    def validate(self, event: BaseEvent) -> None:
        validate(event, self.settings, now=self._clock())

    async def dispatch(self, event: AnyEvent) -> List[CallResult]:
        handler = {
            "identify": self.identify,
            "track": self.track,
            "page": self.page,
            "screen": self.screen,
            "alias": self.alias,
            "group": self.group,
        }[event.type]
        logger.info("Dispatching %s message %s", event.type, event.messageId)
        return await handler(event)  # type: ignore[operator]

    async def identify(self, identify: Identify) -> List[CallResult]:
        self.validate(identify)
        return await run_plan(plan_identify(identify, self.settings), self.transport)

    async def track(self, track: Track) -> List[CallResult]:
        """Send a track event; results are ordered as the calls were issued."""
        self.validate(track)
        return await self._send_track(track)

    async def page(self, page: Page) -> List[CallResult]:
        self.validate(page)
        return await self._send_surface(page)

    async def screen(self, screen: Screen) -> List[CallResult]:
        self.validate(screen)
        return await self._send_surface(screen)

    async def alias(self, alias: Alias) -> List[CallResult]:
        self.validate(alias)
        return await run_plan(plan_alias(alias, self.settings), self.transport)

    async def group(self, group: Group) -> List[CallResult]:
        self.validate(group)
        return await run_plan(plan_group(group, self.settings), self.transport)

    async def _send_track(self, track: Track) -> List[CallResult]:
        steps = plan_track(track, self.settings, now=self._clock())
        return await run_plan(steps, self.transport)

    async def _send_surface(self, msg: SurfaceEvent) -> List[CallResult]:
        """Send each derived track and keep its primary event result.

        Only screens require `apiKey` for old events; an old page is still
        posted to `/import` without it, and Mixpanel may reject the call.
        """
        if not self.settings.apiKey and should_import(msg, self._clock()):
            logger.warning(
                "%s %s is older than 5 days; importing without apiKey",
                msg.type,
                msg.messageId,
            )
        primary: List[CallResult] = []
        for track in surface_tracks(msg, self.settings):
            results = await self._send_track(track)
            primary.extend(r for r in results if r.request.step == PRIMARY_STEP)
        if not primary:
            logger.debug("%s %r produced no calls", msg.type, msg.full_name())
        return primary

