"""Unit tests for the ECP client: XML field extraction and HTTP transport."""

import asyncio
import os

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from ecp_visual.core.broadcast import BroadcastLog
from ecp_visual.core.ecp_client import ECPClient, parse_active_app, parse_power_mode, xml_field
from ecp_visual.core.errors import DeviceUnavailableError


class TestParsing:

    def test_xml_field(self):
        xml = "<device-info><power-mode> PowerOn </power-mode></device-info>"
        assert xml_field(xml, "power-mode") == "PowerOn"
        assert xml_field(xml, "model-name") is None
        assert xml_field("", "power-mode") is None

    def test_power_mode_default(self):
        assert parse_power_mode("<device-info/>") == "unknown"
        assert parse_power_mode("not xml at all") == "unknown"

    def test_active_app_element_form(self):
        xml = '<active-app><app id="12" type="appl" version="4.1">Netflix</app></active-app>'
        assert parse_active_app(xml) == ("Netflix", "12")

    def test_active_app_flat_form(self):
        xml = "<active-app><name>YouTube</name><id>837</id></active-app>"
        assert parse_active_app(xml) == ("YouTube", "837")

    def test_active_app_home_screen(self):
        assert parse_active_app("<active-app><app>Roku</app></active-app>") == ("Roku", "0")

    def test_active_app_defaults(self):
        assert parse_active_app("") == ("Home", "0")
        assert parse_active_app("<active-app/>") == ("Home", "0")


def _device_app(received: list, *, delay: float = 0.0) -> web.Application:
    async def device_info(request):
        await asyncio.sleep(delay)
        return web.Response(text="<device-info><power-mode>PowerOn</power-mode></device-info>")

    async def active_app(request):
        return web.Response(text='<active-app><app id="12">Netflix</app></active-app>')

    async def keypress(request):
        received.append(request.match_info["key"])
        return web.Response(status=200)

    app = web.Application()
    app.router.add_get("/query/device-info", device_info)
    app.router.add_get("/query/active-app", active_app)
    app.router.add_post("/keypress/{key}", keypress)
    return app


class TestTransport:

    @pytest.mark.asyncio
    async def test_queries_return_body_text(self):
        received: list = []
        async with TestServer(_device_app(received)) as server:
            client = ECPClient(server.host, server.port)
            try:
                assert "PowerOn" in await client.get_device_info()
                assert "Netflix" in await client.get_active_app()
            finally:
                await client.close()

    @pytest.mark.asyncio
    async def test_non_2xx_body_is_returned(self):
        async with TestServer(web.Application()) as server:
            client = ECPClient(server.host, server.port)
            try:
                body = await client.get("/query/device-info")
            finally:
                await client.close()
        assert parse_power_mode(body) == "unknown"

    @pytest.mark.asyncio
    async def test_keypress_posts_key(self):
        received: list = []
        async with TestServer(_device_app(received)) as server:
            client = ECPClient(server.host, server.port)
            try:
                assert await client.keypress("Up") is True
            finally:
                await client.close()
        assert received == ["Up"]

    @pytest.mark.asyncio
    async def test_timeout_raises_unavailable(self):
        async with TestServer(_device_app([], delay=0.5)) as server:
            client = ECPClient(server.host, server.port, timeout_ms=50)
            try:
                with pytest.raises(DeviceUnavailableError) as info:
                    await client.get_device_info()
            finally:
                await client.close()
        assert info.value.reason == "timeout"
        assert info.value.path == "/query/device-info"

    @pytest.mark.asyncio
    async def test_refused_connection_raises_unavailable(self, unused_tcp_port):
        client = ECPClient("127.0.0.1", unused_tcp_port, timeout_ms=500)
        try:
            with pytest.raises(DeviceUnavailableError):
                await client.get_active_app()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_failed_keypress_is_logged_not_raised(self, unused_tcp_port):
        log = BroadcastLog()
        client = ECPClient("127.0.0.1", unused_tcp_port, timeout_ms=500, log=log)
        try:
            assert await client.keypress("Home") is False
        finally:
            await client.close()
        entry = log.entries[0]
        assert entry.level == "error"
        assert entry.message == "ECP keypress Home failed"
        assert entry.detail

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = ECPClient("127.0.0.1", 8060)
        await client.close()
        await client.close()
        assert client.address == "127.0.0.1:8060"


@pytest.mark.device
class TestRealDevice:
    """Runs against the Roku named by ECP_HOST; needs --run-device."""

    @pytest.mark.asyncio
    async def test_queries_answer_with_known_fields(self):
        host = os.environ.get("ECP_HOST") or os.environ.get("ROKU_IP")
        if not host:
            pytest.skip("ECP_HOST not set")
        client = ECPClient(host)
        try:
            info = await client.get_device_info()
            app = await client.get_active_app()
        finally:
            await client.close()
        assert parse_power_mode(info) != "unknown"
        name, _ = parse_active_app(app)
        assert name
