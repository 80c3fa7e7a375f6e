"""Application runtime scaffolding for the ticket intake bot process."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from aiohttp import web
from discord.ext import commands

from shared import health as healthmod
from shared.config import (
    get_bot_name,
    get_bot_version,
    get_debug_mode,
    get_env_name,
    get_log_channel_id,
    get_log_level,
    get_port,
)
from shared.logging import get_trace_id, set_trace_id, setup_logging

if TYPE_CHECKING:  # pragma: no cover
    from modules.intake.reporter import StatusReporter

log = logging.getLogger("intake.runtime")

_ACTIVE_RUNTIME: "Runtime | None" = None

INTAKE_COG_NAME = "IntakeTickets"


def _status_reporter(runtime: "Runtime | None") -> "StatusReporter | None":
    if runtime is None:
        return None
    cog = runtime.bot.get_cog(INTAKE_COG_NAME) if hasattr(runtime.bot, "get_cog") else None
    return getattr(cog, "reporter", None)


async def create_app(*, runtime: "Runtime | None" = None) -> web.Application:
    """Create and configure the aiohttp application used by the runtime."""

    static_fields = {"env": get_env_name(), "bot": get_bot_name()}
    access_logger = setup_logging(
        level=get_log_level(),
        debug=get_debug_mode(),
        static_fields=static_fields,
        access_logger_name="aiohttp.access",
        access_static_fields={"env": static_fields["env"], "bot": static_fields["bot"]},
    )

    healthmod.set_component("runtime", True)

    @web.middleware
    async def tracing_middleware(
        request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
    ) -> web.StreamResponse:
        trace = set_trace_id()
        started = time.perf_counter()
        status = 500
        try:
            response = await handler(request)
            status = getattr(response, "status", status)
            response.headers["X-Trace-Id"] = trace
            return response
        finally:
            duration_ms = int((time.perf_counter() - started) * 1000)
            access_logger.info(
                "http_request",
                extra={
                    "trace": trace,
                    "path": request.path,
                    "method": request.method,
                    "status": status,
                    "ms": duration_ms,
                },
            )

    app = web.Application(middlewares=[tracing_middleware])

    def _base_payload() -> dict[str, Any]:
        return {
            "ok": True,
            "bot": get_bot_name(),
            "env": get_env_name(),
            "version": get_bot_version(),
        }

    async def root(_: web.Request) -> web.Response:
        payload = _base_payload()
        payload["trace"] = get_trace_id()
        return web.json_response(payload)

    async def ready(_: web.Request) -> web.Response:
        components = healthmod.components_snapshot()
        ok = healthmod.overall_ready()
        return web.json_response({"ok": ok, "components": components}, status=200 if ok else 503)

    async def health(_: web.Request) -> web.Response:
        payload = _base_payload()
        components = healthmod.components_snapshot(include_required=False)
        ok = all(item.get("ok", False) for item in components.values())
        payload.update({"ok": ok, "components": components, "endpoint": "health"})
        return web.json_response(payload, status=200 if ok else 503)

    async def healthz(_: web.Request) -> web.Response:
        payload = _base_payload()
        payload["endpoint"] = "healthz"
        return web.json_response(payload)

    async def intake_stats(_: web.Request) -> web.Response:
        reporter = _status_reporter(runtime)
        if reporter is None:
            return web.json_response({"ok": False, "error": "intake not loaded"}, status=503)
        return web.json_response({"ok": True, "stats": reporter.snapshot().to_dict()})

    async def intake_tickets(_: web.Request) -> web.Response:
        reporter = _status_reporter(runtime)
        if reporter is None:
            return web.json_response({"ok": False, "error": "intake not loaded"}, status=503)
        tickets = [info.to_dict() for info in reporter.tickets()]
        return web.json_response({"ok": True, "count": len(tickets), "tickets": tickets})

    app.router.add_get("/", root)
    app.router.add_get("/ready", ready)
    app.router.add_get("/health", health)
    app.router.add_get("/healthz", healthz)
    app.router.add_get("/intake/stats", intake_stats)
    app.router.add_get("/intake/tickets", intake_tickets)

    return app


def set_active_runtime(runtime: "Runtime | None") -> None:
    global _ACTIVE_RUNTIME
    _ACTIVE_RUNTIME = runtime


def get_active_runtime() -> "Runtime | None":
    return _ACTIVE_RUNTIME


async def send_log_message(message: str) -> None:
    runtime = get_active_runtime()
    if runtime is None:
        log.debug("log message dropped: runtime inactive")
        return
    await runtime.send_log_message(message)


def _trim_message(message: str, *, limit: int = 1800) -> str:
    message = message.strip()
    if len(message) <= limit:
        return message
    return f"{message[: limit - 1]}…"


class _RecurringJob:
    def __init__(
        self,
        scheduler: "Scheduler",
        *,
        interval: timedelta,
        tag: str | None = None,
        name: str | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._interval = interval
        self.tag = tag
        self.name = name
        self.next_run: datetime | None = None

    def _compute_next_run(self, reference: datetime | None = None) -> datetime:
        now = reference or datetime.now(timezone.utc)
        interval_seconds = max(1.0, self._interval.total_seconds())
        # Align to UTC interval boundaries.
        cycles = math.floor(now.timestamp() / interval_seconds)
        candidate = datetime.fromtimestamp((cycles + 1) * interval_seconds, tz=timezone.utc)
        if candidate <= now:
            candidate = now + timedelta(seconds=1)
        return candidate

    async def _sleep_until_due(self) -> None:
        if self.next_run is None:
            self.next_run = self._compute_next_run()
        while True:
            now = datetime.now(timezone.utc)
            delay = (self.next_run - now).total_seconds()
            if delay <= 0:
                break
            await asyncio.sleep(min(delay, 60.0))

    def do(self, job: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        self.next_run = self._compute_next_run()

        async def runner() -> None:
            while True:
                await self._sleep_until_due()
                try:
                    await job()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    log.exception(
                        "recurring job error",
                        extra={
                            "job_name": self.name or getattr(job, "__name__", "job"),
                            "tag": self.tag,
                        },
                    )
                finally:
                    self.next_run = self._compute_next_run()

        task_name = self.name or getattr(job, "__name__", "recurring_job")
        return self._scheduler.spawn(runner(), name=task_name)


class Scheduler:
    """Very small asyncio task supervisor for background jobs."""

    def __init__(self) -> None:
        self._tasks: list[asyncio.Task] = []

    def spawn(self, coro: Awaitable, *, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.append(task)
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        if task in self._tasks:
            self._tasks.remove(task)

    def every(
        self,
        *,
        hours: float = 0.0,
        minutes: float = 0.0,
        seconds: float = 0.0,
        tag: str | None = None,
        name: str | None = None,
    ) -> _RecurringJob:
        total_seconds = float(hours) * 3600.0 + float(minutes) * 60.0 + float(seconds)
        if total_seconds <= 0:
            total_seconds = 60.0
        interval = timedelta(seconds=total_seconds)
        return _RecurringJob(self, interval=interval, tag=tag, name=name)

    async def shutdown(self) -> None:
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # pragma: no cover - best-effort cleanup
                log.exception("scheduler task error during shutdown")


class Runtime:
    """Container object that wires the bot, status server, and scheduler."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self.scheduler = Scheduler()
        self._web_app: Optional[web.Application] = None
        self._web_runner: Optional[web.AppRunner] = None
        self._web_site: Optional[web.TCPSite] = None
        set_active_runtime(self)

    async def start_webserver(self, *, port: Optional[int] = None) -> None:
        if self._web_site is not None:
            return
        port = port if port is not None else get_port()

        app = await create_app(runtime=self)
        self._web_app = app
        self._web_runner = web.AppRunner(app)
        await self._web_runner.setup()
        self._web_site = web.TCPSite(self._web_runner, host="0.0.0.0", port=port)
        await self._web_site.start()
        log.info("web server listening", extra={"port": port})

    async def shutdown_webserver(self) -> None:
        site, runner = self._web_site, self._web_runner
        self._web_site = None
        self._web_runner = None
        self._web_app = None
        if site is not None:
            await site.stop()
        if runner is not None:
            await runner.cleanup()

    async def send_log_message(self, message: str) -> None:
        channel_id = get_log_channel_id()
        if not channel_id:
            return
        content = _trim_message(str(message))
        if not content:
            return
        await self.bot.wait_until_ready()
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except Exception:
                log.exception("failed to fetch log channel", extra={"log_channel_id": channel_id})
                return
        try:
            await channel.send(content)
        except Exception:
            log.exception("failed to send log message", extra={"log_channel_id": channel_id})

    async def load_extensions(self) -> None:
        """Load the intake cog into the shared bot instance."""

        from cogs import intake_tickets

        await intake_tickets.setup(self.bot)

    async def start(self, token: str) -> None:
        await self.start_webserver()
        await self.load_extensions()
        await self.bot.start(token)

    async def close(self) -> None:
        cog = self.bot.get_cog(INTAKE_COG_NAME)
        if cog is not None:
            await cog.shutdown()
        await self.shutdown_webserver()
        await self.scheduler.shutdown()
        set_active_runtime(None)
