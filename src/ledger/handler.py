from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import ClientError

from common.errors import InvalidArgumentsError, LedgerError
from state.s3_store import DEFAULT_PREFIX, S3StateStore
from state.store import InMemoryStateStore, StateStore

from .dispatcher import Dispatcher

logger = logging.getLogger(__name__)


# Environment configuration
ENV_STATE_BUCKET = "STATE_BUCKET"
ENV_STATE_PREFIX = "STATE_PREFIX"  # optional; defaults to "ledger/"
ENV_PARAM_PREFIX = "PARAM_PREFIX"  # optional; enables encryption via SSM fernet_key
ENV_STATE_BACKEND = "STATE_BACKEND"  # "s3" (default) or "memory"
ENV_LOG_LEVEL = "LEDGER_LOG_LEVEL"

# Backward-compatible fallbacks
FALLBACK_ENV_STATE_BUCKET = "LEDGER_STATE_BUCKET"
FALLBACK_ENV_STATE_PREFIX = "LEDGER_STATE_PREFIX"
FALLBACK_ENV_PARAM_PREFIX = "LEDGER_PARAM_PREFIX"

ENTRYPOINTS = ("init", "invoke", "query")

# Kept per warm container so the memory backend survives between invocations
_dispatcher: Optional[Dispatcher] = None


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            # Leave as None if parameter missing or access denied
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                out[name] = None
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


def _configure_logging() -> None:
    level = _getenv(ENV_LOG_LEVEL)
    if level:
        logging.basicConfig(level=level.upper())


def build_store() -> StateStore:
    """Build the state substrate described by the environment."""
    backend = (_getenv(ENV_STATE_BACKEND, "s3") or "s3").lower()
    if backend == "memory":
        return InMemoryStateStore()
    if backend != "s3":
        raise RuntimeError(f"Unsupported {ENV_STATE_BACKEND}: {backend}")

    bucket = _getenv(ENV_STATE_BUCKET) or _getenv(FALLBACK_ENV_STATE_BUCKET)
    prefix = _getenv(ENV_STATE_PREFIX) or _getenv(FALLBACK_ENV_STATE_PREFIX, DEFAULT_PREFIX)
    param_prefix = _getenv(ENV_PARAM_PREFIX) or _getenv(FALLBACK_ENV_PARAM_PREFIX)

    bucket = _require(bucket, ENV_STATE_BUCKET)

    fernet_key: Optional[str] = None
    if param_prefix:
        params = _load_ssm_params(param_prefix, ["fernet_key"])
        fernet_key = _require(params.get("fernet_key"), f"{param_prefix}fernet_key")

    return S3StateStore(bucket=bucket, prefix=prefix or DEFAULT_PREFIX, fernet_key=fernet_key)


def _get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = Dispatcher(build_store())
    return _dispatcher


def _parse_args(raw: Any) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidArgumentsError("args must be a list of strings")
    if not all(isinstance(a, str) for a in raw):
        raise InvalidArgumentsError("args must be a list of strings")
    return raw


def handle(dispatcher: Dispatcher, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run one host request against `dispatcher`.

    Event shape: {"entrypoint": "init"|"invoke"|"query", "function": str, "args": [str, ...]}
    (`function` is ignored for "init").

    Returns {"ok": True, "payload": str|None} on success, or
    {"ok": False, "error": {"kind": str, "message": str}} for ledger failures.
    """
    try:
        entrypoint = event.get("entrypoint") if isinstance(event, dict) else None
        if entrypoint not in ENTRYPOINTS:
            raise InvalidArgumentsError(
                f"entrypoint must be one of {', '.join(ENTRYPOINTS)}; got {entrypoint!r}"
            )
        args = _parse_args(event.get("args"))

        if entrypoint == "init":
            result = dispatcher.init(args)
        else:
            function = event.get("function")
            if not isinstance(function, str):
                raise InvalidArgumentsError("function must be a string")
            if entrypoint == "invoke":
                result = dispatcher.invoke(function, args)
            else:
                result = dispatcher.query(function, args)
    except LedgerError as e:
        logger.warning(f"request failed: {e.kind}: {e}")
        return {"ok": False, "error": {"kind": e.kind, "message": str(e)}}

    payload = result.decode("utf-8", errors="replace") if result is not None else None
    return {"ok": True, "payload": payload}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda entry for ledger requests.

    Environment:
    - STATE_BUCKET, STATE_PREFIX (default: ledger/), PARAM_PREFIX (optional)
    - Fallbacks: LEDGER_STATE_BUCKET, LEDGER_STATE_PREFIX, LEDGER_PARAM_PREFIX
    - STATE_BACKEND: "s3" (default) or "memory"
    - If PARAM_PREFIX is set, SSM under it must provide: fernet_key
    """
    _configure_logging()
    return handle(_get_dispatcher(), event)
