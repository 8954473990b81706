"""Redis key schema. Namespace: {env}:{service}:{module}:..."""

import hashlib
import json
import os

ENV = os.getenv("ENV", "dev")


def _digest(payload) -> str:
    raw = json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


def key_tasks_list(user_id: int, params: dict) -> str:
    return f"{ENV}:api:tasks:{user_id}:{_digest(params)}"


def pattern_tasks_list(user_id: int) -> str:
    return f"{ENV}:api:tasks:{user_id}:*"


def key_focus_list(user_id: int, params: dict) -> str:
    return f"{ENV}:api:focus:{user_id}:{_digest(params)}"


def pattern_focus_list(user_id: int) -> str:
    return f"{ENV}:api:focus:{user_id}:*"


def key_dashboard(user_id: int) -> str:
    return f"{ENV}:api:dashboard:{user_id}"


def key_ai_response(agent: str, message: str, context: dict | None) -> str:
    return f"{ENV}:ai:{agent}:{_digest({'message': message, 'context': context or {}})}"


def key_presence(user_id: int) -> str:
    return f"{ENV}:presence:{user_id}"


def key_token_blacklist(jti: str) -> str:
    return f"{ENV}:auth:blacklist:{jti}"


def key_refresh_token(jti: str) -> str:
    return f"{ENV}:auth:rt:{jti}"


def key_user_refresh_tokens(user_id: int) -> str:
    return f"{ENV}:auth:rt:uid:{user_id}"


def key_rate_limit(scope: str, identifier: str, window_index: int) -> str:
    return f"{ENV}:ratelimit:{scope}:{identifier}:{window_index}"


# TTL constants (seconds)
TTL_PRESENCE = 300       # 5 minutes
TTL_DASHBOARD = 60
TTL_FOCUS_LIST = 120
TTL_TASKS_LIST = 300
