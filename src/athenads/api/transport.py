#
#  Copyright (C) 2017-2025 Dremio Corporation
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#
import asyncio

from aiohttp import (
    ClientError,
    ClientResponse,
    ClientSession,
    ClientTimeout,
)
from typing import (
    AnyStr,
    Callable,
    Optional,
    Dict,
    Type,
    TypeAlias,
    Awaitable,
    Any,
)
from athenads.log import logger
from json import loads
from pydantic import BaseModel, ValidationError
from http import HTTPStatus

from athenads.config import settings
from athenads.api.models import QueryRequest, QueryResponse
from athenads.errors import TransportError

DeserializationStrategy: TypeAlias = Type[BaseModel]

QUERY_ENDPOINT = "/api/tsdb/query"


class RetryConfig:
    def __init__(self):
        if settings.instance() and settings.instance().athena:
            self.config = settings.instance().athena.http_retry
        else:
            self.config = settings.HttpRetry()

    @property
    def max_retries(self) -> int:
        """Expose max_retries from config for convenience"""
        return self.config.max_retries

    def get_config_delay(self, attempt_number: int = 0) -> float:
        return self.config.initial_delay * (
            self.config.backoff_multiplier**attempt_number
        )

    def get_delay(
        self,
        response: ClientResponse,
        attempt_number: int,
    ) -> float:
        retry_after = response.headers.get("Retry-After")
        delay = self.get_config_delay(attempt_number=attempt_number)
        if retry_after is not None:
            try:
                delay = min(delay, int(retry_after))
            except (ValueError, TypeError) as e:
                logger().debug(
                    "invalid_retry_after_header", retry_after=retry_after, error=str(e)
                )

        return min(delay, self.config.max_delay)


async def retry_middleware(
    req, handler: Callable[[Any], Awaitable[ClientResponse]]
) -> ClientResponse:
    """
    Middleware that automatically retries requests on 429 (rate limit) errors.
    Uses exponential backoff with configurable parameters from settings.
    """
    retry_config = RetryConfig()
    for attempt in range(retry_config.max_retries + 1):
        response = await handler(req)
        if response.status != HTTPStatus.TOO_MANY_REQUESTS:
            break
        if attempt == retry_config.max_retries:
            break

        delay = retry_config.get_delay(response, attempt)
        logger(f"{__name__}.retry").warning(
            "rate_limited",
            method=req.method,
            path=req.url.path,
            attempt=attempt + 1,
            max_retries=retry_config.max_retries,
            delay=round(delay, 2),
        )
        await asyncio.sleep(delay)

    return response


class AsyncHttpClient:
    def __init__(
        self, uri: AnyStr, token: Optional[AnyStr] = None, timeout: float = None
    ):
        self.uri = uri
        self.token = token
        self.timeout = ClientTimeout(total=timeout) if timeout else None
        self.headers = {"content-type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def deserialize(
        self, response: ClientResponse, deser: DeserializationStrategy
    ):
        js = await response.text()
        try:
            return deser.model_validate_json(js)
        except ValidationError as e:
            logger().error(
                "response_validation_failed",
                method=response.request_info.method,
                url=str(response.request_info.url),
                errors=e.errors(),
            )
            raise TransportError(
                f"Unable to parse response as {deser.__name__}: {e}",
                status=response.status,
            ) from e

    async def error_detail(self, response: ClientResponse) -> Optional[str]:
        """The ``error`` (or else ``message``) member of a JSON error body"""
        try:
            body = loads(await response.text())
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("error") or body.get("message")
        return None

    async def handle_response(
        self, response: ClientResponse, deser: DeserializationStrategy
    ):
        if response.status >= HTTPStatus.BAD_REQUEST:
            detail = await self.error_detail(response) or response.reason
            logger().error(
                "http_request_failed",
                method=response.request_info.method,
                url=str(response.request_info.url),
                status=response.status,
                error=detail,
            )
            raise TransportError(
                f"Request failed with HTTP {response.status}: {detail}",
                status=response.status,
            )
        return await self.deserialize(response, deser)

    def log_request(
        self, method: str, endpoint: str, params: Optional[Dict[AnyStr, Any]] = None
    ):
        sanitized_headers = {
            k: (v if k != "Authorization" else "Bearer <redacted>")
            for k, v in self.headers.items()
        }
        logger().debug(
            "http_request",
            method=method,
            url=f"{self.uri}{endpoint}",
            headers=sanitized_headers,
            params=params,
        )

    async def post(
        self,
        endpoint: AnyStr,
        deser: DeserializationStrategy,
        body: Optional[Dict[str, Any]] = None,
    ):
        async with ClientSession(
            middlewares=(retry_middleware,), timeout=self.timeout
        ) as session:
            self.log_request("POST", endpoint)
            async with session.post(
                f"{self.uri}{endpoint}", headers=self.headers, json=body
            ) as response:
                return await self.handle_response(response, deser)


class AthenaAsyncHttpClient(AsyncHttpClient):
    def __init__(self):
        athena = settings.instance().athena
        if athena is None or athena.uri is None:
            raise RuntimeError("athena.uri is required")
        super().__init__(athena.uri, athena.token, timeout=athena.request_timeout)

    async def handle_response(
        self, response: ClientResponse, deser: DeserializationStrategy
    ):
        if deser is QueryResponse and response.status == HTTPStatus.NO_CONTENT:
            return QueryResponse(status=response.status)
        result = await super().handle_response(response, deser)
        if isinstance(result, QueryResponse):
            result.status = response.status
        return result

    async def query(self, request: QueryRequest) -> QueryResponse:
        try:
            return await self.post(
                QUERY_ENDPOINT, body=request.to_json(), deser=QueryResponse
            )
        except (ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Query request failed: {e!r}") from e
