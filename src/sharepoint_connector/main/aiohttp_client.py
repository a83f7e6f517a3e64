import time

import aiohttp

from sharepoint_connector.main.logging import get_logger

logger = get_logger(__name__)


class AioHttpClient:
    session: aiohttp.ClientSession = None

    def _create_trace_config(self) -> aiohttp.TraceConfig:
        """Log slow DNS resolution, which shows up as Graph timeouts otherwise."""
        trace = aiohttp.TraceConfig()

        async def on_dns_start(session, trace_config_ctx, params):
            trace_config_ctx._dns_start_time = time.perf_counter()

        async def on_dns_end(session, trace_config_ctx, params):
            if not hasattr(trace_config_ctx, "_dns_start_time"):
                return
            dns_duration_ms = (time.perf_counter() - trace_config_ctx._dns_start_time) * 1000
            if dns_duration_ms > 2000:
                logger.warning(
                    f"Slow DNS resolution for {params.host}",
                    extra={
                        "event": "dns_slow",
                        "host": params.host,
                        "duration_ms": int(dns_duration_ms),
                    },
                )

        trace.on_dns_resolvehost_start.append(on_dns_start)
        trace.on_dns_resolvehost_end.append(on_dns_end)

        return trace

    def start(self, total_timeout: float | None = None):
        # Downloads can be large; the step timeout bounds them instead of the session
        timeout = aiohttp.ClientTimeout(total=total_timeout, connect=10.0, sock_read=60.0)

        connector = aiohttp.TCPConnector(
            limit=100,
            limit_per_host=30,
            enable_cleanup_closed=True,
            ttl_dns_cache=300,
        )

        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            trace_configs=[self._create_trace_config()],
        )

    async def stop(self):
        if self.session is not None:
            await self.session.close()
        self.session = None

    def __call__(self) -> aiohttp.ClientSession:
        assert self.session is not None
        return self.session
