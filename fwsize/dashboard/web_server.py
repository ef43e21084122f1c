from __future__ import annotations

import asyncio
from dataclasses import asdict
import json
import logging
from typing import TYPE_CHECKING, Any

import tornado.web
from tornado.log import access_log

from fwsize import const
from fwsize.analyze_memory import analyze_firmware
from fwsize.config import toolchain_config_from_dict, validate_config
import fwsize.config_validation as cv
from fwsize.const import (
    CONF_ADDRESS,
    CONF_BINARY_PATH,
    CONF_MAP_PATH,
    CONF_ORDER,
    CONF_PAGE,
    CONF_PAGE_SIZE,
    CONF_QUERY,
    CONF_SORT,
    CONF_TOOLCHAIN,
    ENV_DEV,
)
from fwsize.core import FwsizeError
from fwsize.helpers import get_bool_env

if TYPE_CHECKING:
    from fwsize.analyze_memory.cache import AnalysisCache
    from fwsize.analyze_memory.symbols import SymbolStore

_LOGGER = logging.getLogger(__name__)

SYMBOL_QUERY_ARGUMENTS = (CONF_QUERY, CONF_PAGE, CONF_PAGE_SIZE, CONF_SORT, CONF_ORDER)


# pylint: disable=abstract-method
class BaseHandler(tornado.web.RequestHandler):
    def initialize(self, store: SymbolStore, cache: AnalysisCache) -> None:
        self.store = store
        self.cache = cache

    def write_json(self, data: Any, status: int = 200) -> None:
        self.set_status(status)
        self.set_header("content-type", "application/json")
        self.write(json.dumps(data))
        self.finish()

    def write_failure(self, err: FwsizeError) -> None:
        _LOGGER.debug("Request to %s failed: %s", self.request.path, err)
        self.write_json({"error": str(err)}, status=400)


class AnalyzeRequestHandler(BaseHandler):
    async def post(self) -> None:
        try:
            body = json.loads(self.request.body or b"{}")
        except ValueError:
            self.write_failure(FwsizeError("Request body must be JSON."))
            return

        try:
            request = validate_config(cv.ANALYZE_REQUEST_SCHEMA, body)
            toolchain = None
            if request.get(CONF_TOOLCHAIN) is not None:
                toolchain = toolchain_config_from_dict(request[CONF_TOOLCHAIN])
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None,
                lambda: analyze_firmware(
                    request[CONF_BINARY_PATH],
                    request.get(CONF_MAP_PATH),
                    toolchain,
                    store=self.store,
                    cache=self.cache,
                ),
            )
        except FwsizeError as err:
            self.write_failure(err)
            return

        self.write_json(result.to_dict())


class SymbolsRequestHandler(BaseHandler):
    def get(self) -> None:
        arguments = {
            name: self.get_argument(name)
            for name in SYMBOL_QUERY_ARGUMENTS
            if name in self.request.arguments
        }
        try:
            query = validate_config(cv.SYMBOL_QUERY_SCHEMA, arguments)
        except FwsizeError as err:
            self.write_failure(err)
            return

        page = self.store.list_symbols(
            query=query.get(CONF_QUERY),
            page=query[CONF_PAGE],
            page_size=query[CONF_PAGE_SIZE],
            sort=query.get(CONF_SORT),
            order=query.get(CONF_ORDER),
        )
        self.write_json(asdict(page))


class LookupRequestHandler(BaseHandler):
    def get(self) -> None:
        try:
            result = self.store.lookup_pc(self.get_argument(CONF_ADDRESS, ""))
        except FwsizeError as err:
            self.write_failure(err)
            return
        self.write_json(asdict(result))


class VersionHandler(BaseHandler):
    def get(self) -> None:
        self.write_json({"version": const.__version__})


def make_app(
    store: SymbolStore,
    cache: AnalysisCache,
    debug: bool = get_bool_env(ENV_DEV),
) -> tornado.web.Application:
    def log_function(handler: tornado.web.RequestHandler) -> None:
        if handler.get_status() < 400:
            log_method = access_log.info
        elif handler.get_status() < 500:
            log_method = access_log.warning
        else:
            log_method = access_log.error

        request_time = 1000.0 * handler.request.request_time()
        # pylint: disable=protected-access
        log_method(
            "%d %s %.2fms",
            handler.get_status(),
            handler._request_summary(),
            request_time,
        )

    handler_args = {"store": store, "cache": cache}
    return tornado.web.Application(
        [
            (r"/analyze", AnalyzeRequestHandler, handler_args),
            (r"/symbols", SymbolsRequestHandler, handler_args),
            (r"/lookup", LookupRequestHandler, handler_args),
            (r"/version", VersionHandler, handler_args),
        ],
        debug=debug,
        log_function=log_function,
    )


def start_web_server(
    app: tornado.web.Application,
    address: str,
    port: int,
) -> None:
    """Start the web server listener."""
    _LOGGER.info("Starting web server on http://%s:%s...", address, port)
    app.listen(port, address)


async def async_serve(
    store: SymbolStore, cache: AnalysisCache, address: str, port: int
) -> None:
    app = make_app(store, cache)
    start_web_server(app, address, port)
    # Serve until cancelled
    await asyncio.Event().wait()
