"""
Function Invoker - calls named server-side functions (emails, external sync,
offer code / PDF generation).

Two transports:
- HttpFunctionInvoker posts JSON to a hosted functions endpoint.
- LocalFunctionInvoker dispatches to Python handlers in-process; used for
  local development and tests, where every call is recorded.

Either way a failed call, or a body reporting {"success": false}, raises
FunctionInvocationError. Nothing is retried.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from services.errors import FunctionInvocationError

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Dict[str, Any]]


def _check_result(name: str, result: Any) -> Dict[str, Any]:
    if result is None:
        return {}
    if isinstance(result, dict) and result.get('success') is False:
        message = result.get('message') or result.get('error') or 'function reported failure'
        raise FunctionInvocationError(f"{name}: {message}")
    return result


class FunctionInvoker:
    """Interface: invoke(name, body) -> dict."""

    def invoke(self, name: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        raise NotImplementedError


class HttpFunctionInvoker(FunctionInvoker):
    """Invoke functions deployed behind an HTTP endpoint."""

    def __init__(self, base_url: str, api_key: str = '', timeout: int = 30,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("FUNCTIONS_BASE_URL is required for HTTP function invocation")
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def invoke(self, name: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/{name}"
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"

        logger.debug(f"Invoking remote function {name}")
        try:
            response = self.session.post(url, json=body or {}, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Function {name} unreachable: {e}")
            raise FunctionInvocationError(f"{name}: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            message = ''
            if isinstance(data, dict):
                message = data.get('error') or data.get('message') or ''
            message = message or response.text or f"HTTP {response.status_code}"
            logger.error(f"Function {name} failed with status {response.status_code}: {message}")
            raise FunctionInvocationError(f"{name}: {message}")

        return _check_result(name, data)


class LocalFunctionInvoker(FunctionInvoker):
    """In-process dispatch to registered handlers."""

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None):
        self.handlers: Dict[str, Handler] = dict(handlers or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def register(self, name: str, handler: Handler):
        self.handlers[name] = handler

    def calls_to(self, name: str) -> List[Dict[str, Any]]:
        """Bodies of every recorded call to one function."""
        return [body for called, body in self.calls if called == name]

    def invoke(self, name: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = dict(body or {})
        self.calls.append((name, body))

        handler = self.handlers.get(name)
        if handler is None:
            raise FunctionInvocationError(f"Unknown function '{name}'")

        logger.debug(f"Dispatching local function {name}")
        try:
            result = handler(body)
        except FunctionInvocationError:
            raise
        except Exception as e:
            logger.error(f"Function {name} raised: {e}")
            raise FunctionInvocationError(f"{name}: {e}")

        return _check_result(name, result)


def build_function_invoker(config, data_access_factory=None, storage=None) -> FunctionInvoker:
    """
    Create the invoker selected by FUNCTIONS_MODE.

    Args:
        config: Flask config mapping
        data_access_factory: Callable returning a fresh DataAccess (local mode)
        storage: ObjectStorage used by the PDF handler (local mode)

    Returns:
        FunctionInvoker instance
    """
    mode = (config.get('FUNCTIONS_MODE') or 'local').lower()
    if mode == 'http':
        logger.info(f"Remote functions via HTTP at {config.get('FUNCTIONS_BASE_URL')}")
        return HttpFunctionInvoker(
            config.get('FUNCTIONS_BASE_URL'),
            api_key=config.get('FUNCTIONS_API_KEY', ''),
            timeout=config.get('FUNCTIONS_TIMEOUT', 30),
        )

    from services.remote_functions import RemoteFunctions

    functions = RemoteFunctions(config, data_access_factory, storage)
    invoker = LocalFunctionInvoker(functions.handlers())
    logger.info(f"Remote functions dispatched locally: {', '.join(sorted(invoker.handlers))}")
    return invoker
