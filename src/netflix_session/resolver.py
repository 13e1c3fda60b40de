"""
Normalize bootstrap state into a SessionContext.

The upstream page has alternated between two shapes of embedded state
without notice:

* ``netflix.reactContext.models`` with ``serverDefs``, ``memberContext`` and
  ``truths`` models (``ReactContextVariant``)
* ``netflix.contextData`` with flat ``serverDefs`` and ``authURL``
  (``ContextDataVariant``)

``classify`` maps a namespace tree onto exactly one arm of that closed union,
``Unrecognized`` included, and ``resolve`` turns the arm into plain session
fields. Nothing touches the shared context until ``apply``.
"""
import logging
from dataclasses import dataclass, field

from .config import API_PREFIX
from .exceptions import InactiveAccountError, MissingProfileError, StructuralMismatch
from .session import SessionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReactContextVariant:
    models: dict


@dataclass(frozen=True)
class ContextDataVariant:
    context_data: dict


@dataclass(frozen=True)
class Unrecognized:
    top_level_keys: tuple[str, ...]


ContextVariant = ReactContextVariant | ContextDataVariant | Unrecognized


@dataclass(frozen=True)
class ResolvedContext:
    bootstrap_url: str
    api_root: str
    build_id: str
    endpoint_identifiers: dict[str, str] = field(default_factory=dict)
    auth_token: str | None = None
    models: dict = field(default_factory=dict, repr=False)


def _dig(data, *keys):
    """Follow ``keys`` through nested dicts; None when any step is missing."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def classify(tree: dict) -> ContextVariant:
    namespace = tree.get("netflix") if isinstance(tree, dict) else None
    if not isinstance(namespace, dict):
        namespace = {}
    models = _dig(namespace, "reactContext", "models")
    if isinstance(models, dict):
        return ReactContextVariant(models)
    context_data = namespace.get("contextData")
    if isinstance(context_data, dict):
        return ContextDataVariant(context_data)
    return Unrecognized(tuple(sorted(namespace)))


def _build_identifier(server_defs, bootstrap_url: str) -> str:
    build_id = _dig(server_defs, "BUILD_IDENTIFIER")
    if not build_id or not isinstance(build_id, str):
        raise StructuralMismatch(f"No BUILD_IDENTIFIER in bootstrap state from {bootstrap_url}")
    return build_id


def _resolve_react_context(variant: ReactContextVariant, bootstrap_url: str) -> ResolvedContext:
    models = variant.models
    if not _dig(models, "truths", "data", "CURRENT_MEMBER"):
        raise InactiveAccountError(f"Account behind {bootstrap_url} is not a current member")
    if "memberContext" not in models or models["memberContext"] is None:
        raise MissingProfileError(f"No memberContext in bootstrap state from {bootstrap_url}")

    server_data = _dig(models, "serverDefs", "data")
    build_id = _build_identifier(server_data, bootstrap_url)
    identifiers = _dig(server_data, "endpointIdentifiers") or {}
    if not isinstance(identifiers, dict):
        raise StructuralMismatch(
            f"endpointIdentifiers from {bootstrap_url} is a {type(identifiers).__name__}, not an object"
        )
    return ResolvedContext(
        bootstrap_url=bootstrap_url,
        api_root=API_PREFIX + build_id,
        build_id=build_id,
        endpoint_identifiers={str(k): str(v) for k, v in identifiers.items() if v},
        auth_token=_dig(models, "memberContext", "data", "userInfo", "authURL"),
        models=models,
    )


def _resolve_context_data(variant: ContextDataVariant, bootstrap_url: str) -> ResolvedContext:
    context_data = variant.context_data
    build_id = _build_identifier(context_data.get("serverDefs"), bootstrap_url)
    # This shape never carries endpoint identifiers
    return ResolvedContext(
        bootstrap_url=bootstrap_url,
        api_root=API_PREFIX + build_id,
        build_id=build_id,
        endpoint_identifiers={},
        auth_token=context_data.get("authURL"),
        models=context_data,
    )


def resolve(tree: dict, bootstrap_url: str) -> ResolvedContext:
    """
    Resolve a namespace tree read from ``bootstrap_url``.

    Raises:
        InactiveAccountError: reactContext says the account is not a member
        MissingProfileError: reactContext has no memberContext
        StructuralMismatch: the tree matches no known shape
    """
    variant = classify(tree)
    if isinstance(variant, ReactContextVariant):
        resolved = _resolve_react_context(variant, bootstrap_url)
    elif isinstance(variant, ContextDataVariant):
        resolved = _resolve_context_data(variant, bootstrap_url)
    else:
        raise StructuralMismatch(
            f"Unrecognized bootstrap state from {bootstrap_url} "
            f"(netflix namespace keys: {list(variant.top_level_keys)})"
        )
    logger.debug(
        f"Resolved {type(variant).__name__} from {bootstrap_url}: build {resolved.build_id}, "
        f"{len(resolved.endpoint_identifiers)} endpoint identifier(s)"
    )
    return resolved


def apply(context: SessionContext, resolved: ResolvedContext) -> None:
    """Merge ``resolved`` into ``context``. Callers hold the session writer guard."""
    context.api_root = resolved.api_root
    context.build_id = resolved.build_id
    context.endpoint_identifiers = dict(resolved.endpoint_identifiers)
    context.models = resolved.models
    if resolved.auth_token is not None:
        context.auth_tokens[resolved.bootstrap_url] = resolved.auth_token
