"""Request pipelines — ordered, fail-fast chains of stages.

Built-in stages:
    rate limit -- in-memory token bucket per client key (HTTP 429)
    authorize -- per-route predicate (HTTP 403)
    permissions -- capability checks through an injected Authorizer (HTTP 403)
    handle -- the route handler; errors are forwarded, not raised
"""

from treeroute.pipeline.assemble import (
    assemble,
    client_identity,
    create_handle_stage,
    create_rate_limit_stage,
)
from treeroute.pipeline.authorize import (
    Authorizer,
    AuthorizerProvider,
    create_authorize_stage,
    create_permissions_stage,
)
from treeroute.pipeline.ratelimit import (
    RateLimitConfig,
    RateLimiterRegistry,
    TokenBucketLimiter,
    default_registry,
    parse_duration,
)
from treeroute.pipeline.runner import run_pipeline

__all__ = [
    "Authorizer",
    "AuthorizerProvider",
    "RateLimitConfig",
    "RateLimiterRegistry",
    "TokenBucketLimiter",
    "assemble",
    "client_identity",
    "create_authorize_stage",
    "create_handle_stage",
    "create_permissions_stage",
    "create_rate_limit_stage",
    "default_registry",
    "parse_duration",
    "run_pipeline",
]
