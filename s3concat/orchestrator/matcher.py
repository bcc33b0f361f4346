"""Pattern matching: source keys -> target keys."""
from typing import List, Optional, Tuple, Union
import re

from ..exceptions import ConfigurationError

_NAME_CHARS = re.compile(r"[A-Za-z0-9_]+")

# Template tokens: ("lit", text) or ("ref", group)
Token = Tuple[str, Union[str, int]]


def _group_ref(name: str) -> Union[str, int]:
    return int(name) if name.isdigit() else name


def parse_template(template: str) -> List[Token]:
    """
    Parse a ``$``-style substitution template.

    Supports ``$1``, ``${1}``, ``$name``, ``${name}`` and ``$$`` (literal ``$``).
    An unbraced reference takes the longest run of word characters.
    A ``$`` that starts no valid reference is kept literally.
    """
    tokens: List[Token] = []
    literal: List[str] = []
    i = 0
    n = len(template)

    def flush():
        if literal:
            tokens.append(("lit", "".join(literal)))
            literal.clear()

    while i < n:
        char = template[i]
        if char != "$":
            literal.append(char)
            i += 1
            continue

        if template.startswith("$$", i):
            literal.append("$")
            i += 2
            continue

        if template.startswith("${", i):
            end = template.find("}", i + 2)
            name = template[i + 2:end] if end != -1 else ""
            if end != -1 and _NAME_CHARS.fullmatch(name):
                flush()
                tokens.append(("ref", _group_ref(name)))
                i = end + 1
                continue
            literal.append(char)
            i += 1
            continue

        match = _NAME_CHARS.match(template, i + 1)
        if match:
            flush()
            tokens.append(("ref", _group_ref(match.group(0))))
            i = match.end()
            continue

        literal.append(char)
        i += 1

    flush()
    return tokens


class PatternMatcher:
    """
    Compiled source pattern plus target template.

    Pure and stateless after construction; safe to share across a run.
    """

    def __init__(self, source: str, target: str):
        try:
            self._regex = re.compile(source)
        except re.error as exc:
            raise ConfigurationError(f"Invalid source pattern {source!r}: {exc}") from exc
        if not target:
            raise ConfigurationError("Target template must not be empty")
        self._source = source
        self._target = target
        self._tokens = parse_template(target)

    @property
    def source(self) -> str:
        return self._source

    @property
    def target(self) -> str:
        return self._target

    def _expand(self, match: "re.Match[str]") -> str:
        out: List[str] = []
        for kind, value in self._tokens:
            if kind == "lit":
                out.append(value)
                continue
            try:
                out.append(match.group(value) or "")
            except IndexError:
                # Unknown groups expand to nothing
                out.append("")
        return "".join(out)

    def matches(self, key: str) -> bool:
        return self._regex.search(key) is not None

    def resolve(self, key: str) -> Optional[str]:
        """
        Resolve the target key for a source key.

        Returns:
            The target key, or None when the key does not match or
            resolves to itself.
        """
        if not self.matches(key):
            return None
        target = self._regex.sub(self._expand, key)
        if target == key:
            return None
        return target
