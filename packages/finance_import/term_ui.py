"""Terminal prompts (prompt_toolkit-based) for confirming import mappings.

Kept apart from the mapping logic so the prompts can be driven in tests with
a pipe input and a dummy output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style

CREATE_SENTINEL = "+ Create new..."
_CREATE_HINT_PREFIX = "  [Create "


class CreateMappableRequest:
    """Returned instead of a name when the operator asked for a new entity.

    ``name`` is what was typed; empty when the explicit create option was
    picked from the list.
    """

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CreateMappableRequest) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"CreateMappableRequest(name={self.name!r})"


def _session_with(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def select_mappable_or_create(
    options: Sequence[str] | Iterable[str],
    *,
    default: str,
    message: str = "Map to (Enter to accept): ",
    session: PromptSession | None = None,
    allow_create: bool = True,
) -> str | CreateMappableRequest:
    """Prompt the operator to pick an existing entity name.

    The buffer starts with ``default``. Tab or Down opens the completion menu
    (or applies the inline prefix suggestion); Enter accepts the highlighted
    completion, the inline suggestion, or the typed text. With
    ``allow_create`` any text that is not one of ``options`` (or the explicit
    create option) comes back as a :class:`CreateMappableRequest`.
    """

    words = list(options)
    if allow_create:
        words.append(CREATE_SENTINEL)
    vocab = [w for w in words if w != CREATE_SENTINEL]
    by_lower = {w.lower(): w for w in vocab}

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        if lower in by_lower:
            return None
        for w in vocab:
            if w.lower().startswith(lower):
                return w
        return None

    class _SuggestOrCreate(AutoSuggest):
        def get_suggestion(self, buffer, document):
            text = document.text
            if not text or text.lower() in by_lower:
                return None
            cand = _best_prefix_match(text)
            if cand is not None:
                return Suggestion(cand[len(text) :])
            if allow_create:
                return Suggestion(f"{_CREATE_HINT_PREFIX}'{text}'?]")
            return None

    kb = KeyBindings()

    def _pending_suggestion(b) -> str | None:
        s = getattr(b, "suggestion", None)
        text = getattr(s, "text", None)
        if text and text.startswith(_CREATE_HINT_PREFIX):
            text = None
        if not text:
            cand = _best_prefix_match(b.document.text)
            if cand:
                text = cand[len(b.document.text) :]
        return text or None

    # Menu position tracked locally: completions are computed asynchronously
    # and may not have arrived when Enter is processed.
    menu_opened = False
    menu_index = 0

    def _open_or_advance(b) -> None:
        nonlocal menu_opened, menu_index
        if b.complete_state is None:
            b.start_completion(select_first=True)
            menu_index = 0 if not menu_opened else menu_index + 1
        else:
            b.complete_next()
            menu_index += 1
        menu_opened = True

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        _open_or_advance(event.app.current_buffer)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        suggestion = _pending_suggestion(b)
        if suggestion:
            b.insert_text(suggestion)
        else:
            _open_or_advance(b)

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        elif menu_opened and not b.document.text:
            b.insert_text(words[max(0, min(menu_index, len(words) - 1))])
        else:
            suggestion = _pending_suggestion(b)
            if suggestion:
                b.insert_text(suggestion)
        b.validate_and_handle()

    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)
    sess = _session_with(session, kb)
    result = sess.prompt(
        message,
        completer=completer,
        default=default or "",
        key_bindings=kb,
        auto_suggest=_SuggestOrCreate(),
        style=Style.from_dict({"auto-suggestion": "fg:#888888"}),
    )

    result = result.strip() or (default or "")
    if allow_create:
        if result == CREATE_SENTINEL:
            return CreateMappableRequest("")
        if result.lower() not in by_lower:
            return CreateMappableRequest(result)
    return by_lower.get(result.lower(), result)


__all__ = [
    "CREATE_SENTINEL",
    "CreateMappableRequest",
    "select_mappable_or_create",
]
