"""Session Options: the trailing-options convention that carries a session into business operations.

Invariants:
    - Business operations take an optional trailing mapping; its "session" key holds the handle
    - The mapping may arrive positionally (last argument) or as the `options` keyword
    - inject_session never mutates the caller's mapping (always copies)
    - An already-present session is never overwritten
    - Only mappings count as structured options; any other trailing value is left alone

Design Decisions:
    - Pure functions over tuples: the async wrapper in infrastructure/ stays a thin shell
"""

from collections.abc import Mapping
from typing import Any

SESSION_KEY = "session"
OPTIONS_PARAM = "options"


def trailing_options(args: tuple) -> Mapping | None:
    """Return the last positional argument when it is an options mapping."""
    if args and isinstance(args[-1], Mapping):
        return args[-1]
    return None


def carried_session(args: tuple, kwargs: Mapping | None = None) -> Any | None:
    """Session already present in the options, keyword or trailing, if any."""
    if kwargs and OPTIONS_PARAM in kwargs:
        options = kwargs[OPTIONS_PARAM]
        if not isinstance(options, Mapping):
            return None
    else:
        options = trailing_options(args)
    if options is None:
        return None
    return options.get(SESSION_KEY)


def inject_session(args: tuple, session: Any) -> tuple:
    """Amended argument tuple whose trailing options carry session.

    A trailing mapping without a session is replaced by a copy that has one
    (same length). Anything else gets a new {"session": session} appended.
    """
    options = trailing_options(args)
    if options is None:
        return (*args, {SESSION_KEY: session})
    if options.get(SESSION_KEY) is not None:
        return args
    return (*args[:-1], {**options, SESSION_KEY: session})


def session_from(options: Mapping | None) -> Any | None:
    """Read the injected session from an operation's options argument."""
    if not options:
        return None
    return options.get(SESSION_KEY)


def amend_arguments(
    args: tuple, kwargs: Mapping, session: Any,
) -> tuple[tuple, dict]:
    """Positional and keyword arguments amended so the options carry session.

    An `options` keyword takes precedence: a mapping there is copied with the
    session added, None becomes {"session": session}. Without that keyword
    the positional rule of inject_session applies.
    """
    if OPTIONS_PARAM in kwargs:
        options = kwargs[OPTIONS_PARAM]
        if options is None:
            return args, {**kwargs, OPTIONS_PARAM: {SESSION_KEY: session}}
        if isinstance(options, Mapping) and options.get(SESSION_KEY) is None:
            return args, {**kwargs, OPTIONS_PARAM: {**options, SESSION_KEY: session}}
        return args, dict(kwargs)
    return inject_session(args, session), dict(kwargs)
