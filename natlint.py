#!/usr/bin/env python3
"""
Natlint - NatSpec documentation linter for Solidity

High-level goals:
- Parse Solidity into a tree of declarations (contracts, functions, structs, ...)
- Attach each declaration's preceding doc-comment block as parsed NatSpec tags
- Evaluate a catalog of documentation rules against every declaration
- Emit human-readable or structured JSON reports for CI / IDEs

Rules are plain data (name, description, target kind, check function) built from
a handful of generic shapes; the engine dispatches them by declaration kind.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Literal, Optional, Sequence, Set, Tuple, Union
import argparse
import bisect
import fnmatch
import functools
import glob
import json
import os
import re
import sys

import yaml


__version__ = "0.1.0"


# ============================================================
# ================ SOURCE SPANS & ERRORS =====================
# ============================================================

@dataclass(frozen=True)
class SourceSpan:
    """Half-open character range [start, end) into the linted source text."""
    start: int
    end: int


@dataclass(frozen=True)
class Identifier:
    name: str
    loc: SourceSpan


class LintError(Exception):
    """Raised when a whole file cannot be linted."""


class SolidityParseError(LintError):
    """
    Raised by the Solidity front-end. A file that fails to parse produces no
    declaration tree at all; there is no partial result.
    """

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class ConfigError(LintError):
    """Raised for unreadable or malformed configuration files."""


class NatspecParseError(Exception):
    """
    Raised by the tag parser for one comment line. It never escapes a lint
    pass: the offending line is left out of its comment block.
    """

    MESSAGES: ClassVar[Dict[str, str]] = {
        "MissingTag": "Missing natspec tag",
        "MissingDescription": "Missing natspec description",
        "MissingParameterName": "Missing parameter name",
        "MissingParameterDesc": "Missing parameter description",
        "MissingReturnName": "Missing return variable name",
        "MissingReturnDesc": "Missing return variable description",
        "MissingCustomTag": "Missing custom tag",
        "UnknownTag": "Unknown tag",
    }

    def __init__(self, kind: str, detail: Optional[str] = None) -> None:
        self.kind = kind
        self.detail = detail
        text = self.MESSAGES[kind]
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)


# ============================================================
# ===================== NATSPEC TAGS =========================
# ============================================================

@dataclass(frozen=True)
class CommentTag:
    """
    A NatSpec tag kind. Built-in tags use their bare name ("notice"), custom
    tags are stored as "custom:<name>". Renders as it is written in source.
    """
    name: str

    @classmethod
    def custom(cls, name: str) -> "CommentTag":
        return cls(f"custom:{name}")

    @property
    def is_custom(self) -> bool:
        return self.name.startswith("custom:")

    def __str__(self) -> str:
        return f"@{self.name}"


TAG_TITLE = CommentTag("title")
TAG_AUTHOR = CommentTag("author")
TAG_NOTICE = CommentTag("notice")
TAG_DEV = CommentTag("dev")
TAG_PARAM = CommentTag("param")
TAG_RETURN = CommentTag("return")
TAG_INHERITDOC = CommentTag("inheritdoc")
TAG_VARIANT = CommentTag.custom("variant")

_BUILTIN_TAGS: Dict[str, CommentTag] = {
    str(tag): tag
    for tag in (TAG_TITLE, TAG_AUTHOR, TAG_NOTICE, TAG_DEV, TAG_PARAM, TAG_RETURN, TAG_INHERITDOC)
}


@dataclass(frozen=True)
class NatspecEntry:
    """
    One parsed tag line. ``value`` is the payload after the tag; for @param and
    @return it begins with the documented name, for @inheritdoc with the base
    contract name.
    """
    tag: CommentTag
    value: str

    def split_first_word(self) -> Tuple[str, str]:
        parts = self.value.split(None, 1)
        if not parts:
            return "", ""
        return parts[0], parts[1] if len(parts) > 1 else ""

    def __str__(self) -> str:
        return f"{self.tag} {self.value}"


def parse_natspec_line(line: str) -> NatspecEntry:
    """
    Parse one trimmed comment line such as ``@param amount The amount`` into a
    NatspecEntry. Raises NatspecParseError describing why the line is not a
    well-formed tag.
    """
    text = line.strip()
    if not text.startswith("@"):
        raise NatspecParseError("MissingTag")

    parts = text.split(None, 1)
    tag_text = parts[0]
    rest = parts[1].strip() if len(parts) > 1 else ""

    if tag_text.startswith("@custom:"):
        custom_name = tag_text[len("@custom:"):]
        if not custom_name:
            raise NatspecParseError("MissingCustomTag")
        tag = CommentTag.custom(custom_name)
    else:
        builtin = _BUILTIN_TAGS.get(tag_text)
        if builtin is None:
            raise NatspecParseError("UnknownTag", tag_text)
        tag = builtin

    if tag in (TAG_PARAM, TAG_RETURN):
        label = "Parameter" if tag == TAG_PARAM else "Return"
        fields = rest.split(None, 1)
        if not fields:
            raise NatspecParseError(f"Missing{label}Name")
        if len(fields) < 2:
            raise NatspecParseError(f"Missing{label}Desc")
        return NatspecEntry(tag, f"{fields[0]} {fields[1]}")

    if not rest:
        raise NatspecParseError("MissingDescription")
    return NatspecEntry(tag, rest)


# ============================================================
# ==================== COMMENT BLOCKS ========================
# ============================================================

def _logical_tag_lines(lines: Sequence[str]) -> List[str]:
    """
    Fold one doc-comment group into logical tag lines. Untagged lines continue
    the previous tag; an untagged opening line reads as an implicit @notice.
    """
    logical: List[str] = []
    for raw in lines:
        text = raw.strip()
        if not text:
            continue
        if not logical:
            logical.append(text if text.startswith("@") else f"@notice {text}")
        elif text.startswith("@"):
            logical.append(text)
        else:
            logical[-1] = f"{logical[-1]} {text}"
    return logical


@dataclass(frozen=True)
class CommentBlock:
    """
    The ordered NatSpec entries documenting exactly one declaration, in source
    order. May be empty.
    """
    entries: Tuple[NatspecEntry, ...] = ()

    @classmethod
    def from_doc_groups(cls, groups: Sequence[Sequence[str]]) -> "CommentBlock":
        entries: List[NatspecEntry] = []
        for group in groups:
            for line in _logical_tag_lines(group):
                try:
                    entries.append(parse_natspec_line(line))
                except NatspecParseError:
                    # Unclassifiable lines count as absent, they never fail the pass.
                    continue
        return cls(tuple(entries))

    def include_tag(self, tag: CommentTag) -> List[NatspecEntry]:
        return [entry for entry in self.entries if entry.tag == tag]

    def find_inheritdoc_base(self) -> Optional[str]:
        for entry in self.include_tag(TAG_INHERITDOC):
            base, _ = entry.split_first_word()
            if base:
                return base
        return None

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


# ============================================================
# ================== SOLIDITY TOKENIZER ======================
# ============================================================

@dataclass(frozen=True)
class Token:
    kind: Literal["ident", "number", "string", "punct"]
    text: str
    loc: SourceSpan


@dataclass(frozen=True)
class RawComment:
    """
    A comment as it appears in source. ``doc_line`` is ``///``, ``doc_block``
    is ``/** */``; ``line`` and ``block`` are ordinary comments.
    """
    kind: Literal["doc_line", "doc_block", "line", "block"]
    text: str
    loc: SourceSpan

    @property
    def is_doc(self) -> bool:
        return self.kind in ("doc_line", "doc_block")

    def doc_lines(self) -> List[str]:
        if self.kind == "doc_line":
            return [self.text[3:].strip()]
        lines: List[str] = []
        for line in self.text[3:-2].splitlines():
            line = line.strip()
            if line.startswith("*"):
                line = line[1:].strip()
            if line:
                lines.append(line)
        return lines


_TOKEN_PATTERN = re.compile(
    r"""
      (?P<ws>\s+)
    | (?P<doc_line>///(?!/)[^\n]*)
    | (?P<line>//[^\n]*)
    | (?P<doc_block>/\*\*(?!/)[\s\S]*?\*/)
    | (?P<block>/\*[\s\S]*?\*/)
    | (?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
    | (?P<number>0[xX][0-9a-fA-F_]+|(?:[0-9][0-9_]*(?:\.[0-9][0-9_]*)?|\.[0-9][0-9_]*)(?:[eE]-?[0-9][0-9_]*)?)
    | (?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    | (?P<punct>>>>=|>>>|<<=|>>=|\*\*|=>|==|!=|<=|>=|&&|\|\||\+\+|--|\+=|-=|\*=|/=|%=|\|=|&=|\^=|<<|>>|->|:=|[(){}\[\];,.=<>+\-*/%!&|^~?:])
    """,
    re.VERBOSE,
)

_COMMENT_KINDS = ("doc_line", "line", "doc_block", "block")


def tokenize(source: str) -> Tuple[List[Token], List[RawComment]]:
    """
    Split Solidity source into tokens and comments. Comments are returned
    separately, in source order, so declarations can be matched with the doc
    comments that precede them.
    """
    tokens: List[Token] = []
    comments: List[RawComment] = []
    pos = 0
    length = len(source)
    while pos < length:
        match = _TOKEN_PATTERN.match(source, pos)
        if match is None:
            if source[pos] in "\"'":
                raise SolidityParseError("Unterminated string literal", pos)
            raise SolidityParseError(f"Unexpected character {source[pos]!r}", pos)
        kind = match.lastgroup
        if kind == "punct" and source.startswith("/*", pos):
            raise SolidityParseError("Unterminated block comment", pos)
        span = SourceSpan(match.start(), match.end())
        if kind in _COMMENT_KINDS:
            comments.append(RawComment(kind, match.group(), span))  # type: ignore[arg-type]
        elif kind != "ws":
            tokens.append(Token(kind, match.group(), span))  # type: ignore[arg-type]
        pos = match.end()
    return tokens, comments


# ============================================================
# ===================== SYNTAX TREE ==========================
# ============================================================

ContractKind = Literal["contract", "abstract", "interface", "library"]
FunctionKind = Literal["function", "constructor", "fallback", "receive", "modifier"]

DECLARATION_KINDS: Tuple[str, ...] = (
    "Contract", "Enum", "Error", "Event", "Function", "Struct", "Type", "Variable",
)


@dataclass
class Parameter:
    """
    A formal element: function parameter or return value, error/event
    parameter, or struct field. ``name`` is None for anonymous parameters.
    """
    loc: SourceSpan
    type_name: str
    name: Optional[Identifier] = None
    storage: Optional[str] = None  # "memory" | "storage" | "calldata"
    indexed: bool = False


@dataclass
class ContractDefinition:
    KIND: ClassVar[str] = "Contract"
    name: Identifier
    ty: ContractKind
    loc: SourceSpan
    bases: List[str] = field(default_factory=list)
    parts: List["SourcePart"] = field(default_factory=list)

    @property
    def is_concrete(self) -> bool:
        return self.ty in ("contract", "abstract")


@dataclass
class FunctionDefinition:
    KIND: ClassVar[str] = "Function"
    ty: FunctionKind
    loc: SourceSpan
    name: Optional[Identifier] = None
    params: List[Parameter] = field(default_factory=list)
    returns: List[Parameter] = field(default_factory=list)
    visibility: Optional[str] = None  # "public" | "external" | "internal" | "private"
    mutability: Optional[str] = None  # "pure" | "view" | "payable" | "constant"
    is_virtual: bool = False
    overrides: Optional[List[str]] = None  # None unless marked `override`
    modifiers: List[str] = field(default_factory=list)
    has_body: bool = False

    @property
    def is_override(self) -> bool:
        return self.overrides is not None

    @property
    def is_public_interface(self) -> bool:
        return self.visibility in ("public", "external") or self.is_override


@dataclass
class StructDefinition:
    KIND: ClassVar[str] = "Struct"
    name: Identifier
    loc: SourceSpan
    fields: List[Parameter] = field(default_factory=list)


@dataclass
class EnumDefinition:
    KIND: ClassVar[str] = "Enum"
    name: Identifier
    loc: SourceSpan
    values: List[Identifier] = field(default_factory=list)


@dataclass
class ErrorDefinition:
    KIND: ClassVar[str] = "Error"
    name: Identifier
    loc: SourceSpan
    fields: List[Parameter] = field(default_factory=list)


@dataclass
class EventDefinition:
    KIND: ClassVar[str] = "Event"
    name: Identifier
    loc: SourceSpan
    fields: List[Parameter] = field(default_factory=list)
    anonymous: bool = False


@dataclass
class VariableDefinition:
    KIND: ClassVar[str] = "Variable"
    name: Identifier
    type_name: str
    loc: SourceSpan
    visibility: Optional[str] = None
    is_constant: bool = False
    is_immutable: bool = False
    overrides: Optional[List[str]] = None

    @property
    def is_override(self) -> bool:
        return self.overrides is not None

    @property
    def is_public_interface(self) -> bool:
        return self.visibility == "public" or self.is_override


@dataclass
class TypeDefinition:
    """User-defined value type: ``type Price is uint128;``."""
    KIND: ClassVar[str] = "Type"
    name: Identifier
    underlying: str
    loc: SourceSpan


SourcePart = Union[
    ContractDefinition,
    FunctionDefinition,
    StructDefinition,
    EnumDefinition,
    ErrorDefinition,
    EventDefinition,
    VariableDefinition,
    TypeDefinition,
]


@dataclass
class SourceUnit:
    """A parsed file: top-level declarations plus the token and comment streams."""
    parts: List[SourcePart]
    tokens: List[Token]
    comments: List[RawComment]
    _token_starts: List[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._token_starts = [token.loc.start for token in self.tokens]

    def doc_comments_before(self, offset: int) -> List[RawComment]:
        """Doc comments lying between the token preceding ``offset`` and ``offset``."""
        index = bisect.bisect_left(self._token_starts, offset)
        lower = self.tokens[index - 1].loc.end if index > 0 else 0
        return [
            comment
            for comment in self.comments
            if comment.is_doc and comment.loc.start >= lower and comment.loc.end <= offset
        ]


# ============================================================
# ================== DECLARATION PARSER ======================
# ============================================================

_CLOSERS = {"(": ")", "[": "]", "{": "}"}
_CLOSING = frozenset(_CLOSERS.values())
_DATA_LOCATIONS = frozenset({"memory", "storage", "calldata"})
_VISIBILITIES = frozenset({"public", "external", "internal", "private"})
_MUTABILITIES = frozenset({"pure", "view", "payable", "constant"})
_PARAMETER_KEYWORDS = _DATA_LOCATIONS | _VISIBILITIES | _MUTABILITIES | {"indexed", "immutable"}
_VARIABLE_ATTRIBUTES = frozenset({"public", "private", "internal", "constant", "immutable", "override", "transient"})


def _split_top_level(tokens: Sequence[Token], separator: str) -> List[List[Token]]:
    """Split ``tokens`` on ``separator`` occurrences outside any bracket group."""
    chunks: List[List[Token]] = []
    current: List[Token] = []
    depth = 0
    for token in tokens:
        if token.kind == "punct":
            if token.text in _CLOSERS:
                depth += 1
            elif token.text in _CLOSING:
                depth -= 1
            elif token.text == separator and depth == 0:
                chunks.append(current)
                current = []
                continue
        current.append(token)
    if current or chunks:
        chunks.append(current)
    return chunks


def _dotted_names(tokens: Sequence[Token]) -> List[str]:
    """Comma-separated (possibly dotted) names such as an ``override(A, B.C)`` list."""
    return ["".join(token.text for token in chunk) for chunk in _split_top_level(tokens, ",") if chunk]


class _SolidityParser:
    """
    Recursive-descent parser over the token stream. Only declaration structure
    is modelled: bodies, initialisers and directives are skipped as balanced
    token groups.
    """

    def __init__(self, source: str, tokens: List[Token]) -> None:
        self.source = source
        self.tokens = tokens
        self.pos = 0

    # ---------------- token helpers ----------------

    def _peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _at(self, text: str, offset: int = 0) -> bool:
        token = self._peek(offset)
        return token is not None and token.text == text

    def _at_ident(self, offset: int = 0) -> bool:
        token = self._peek(offset)
        return token is not None and token.kind == "ident"

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise SolidityParseError("Unexpected end of input", len(self.source))
        self.pos += 1
        return token

    def _expect(self, text: str) -> Token:
        token = self._next()
        if token.text != text:
            raise SolidityParseError(f"Expected '{text}' but found '{token.text}'", token.loc.start)
        return token

    def _expect_ident(self) -> Identifier:
        token = self._next()
        if token.kind != "ident":
            raise SolidityParseError(f"Expected identifier but found '{token.text}'", token.loc.start)
        return Identifier(token.text, token.loc)

    def _skip_group(self) -> List[Token]:
        """Consume one balanced (), [] or {} group, delimiters included."""
        opener = self._next()
        if opener.text not in _CLOSERS:
            raise SolidityParseError(f"Expected a bracket but found '{opener.text}'", opener.loc.start)
        expected = [_CLOSERS[opener.text]]
        group = [opener]
        while expected:
            token = self._next()
            group.append(token)
            if token.kind != "punct":
                continue
            if token.text in _CLOSERS:
                expected.append(_CLOSERS[token.text])
            elif token.text in _CLOSING:
                if token.text != expected[-1]:
                    raise SolidityParseError(
                        f"Mismatched '{token.text}', expected '{expected[-1]}'", token.loc.start
                    )
                expected.pop()
        return group

    def _skip_statement(self) -> Token:
        """Consume tokens up to and including the next top-level ';'."""
        while True:
            token = self._peek()
            if token is None:
                raise SolidityParseError("Expected ';' before end of input", len(self.source))
            if token.kind == "punct" and token.text in _CLOSERS:
                self._skip_group()
                continue
            if token.kind == "punct" and token.text in _CLOSING:
                raise SolidityParseError(f"Unexpected '{token.text}'", token.loc.start)
            self.pos += 1
            if token.text == ";":
                return token

    def _body_ahead(self) -> bool:
        """True if a top-level '{' comes before the next top-level ';'."""
        start = self.pos
        try:
            while True:
                token = self._peek()
                if token is None or token.text == ";":
                    return False
                if token.text == "{":
                    return True
                if token.text in ("(", "["):
                    self._skip_group()
                else:
                    self.pos += 1
        finally:
            self.pos = start

    def _parameter_list(self) -> List[Parameter]:
        if not self._at("("):
            token = self._peek()
            found = token.text if token is not None else "end of input"
            offset = token.loc.start if token is not None else len(self.source)
            raise SolidityParseError(f"Expected '(' but found '{found}'", offset)
        group = self._skip_group()
        parameters: List[Parameter] = []
        for chunk in _split_top_level(group[1:-1], ","):
            if not chunk:
                raise SolidityParseError("Empty parameter in list", group[0].loc.start)
            parameters.append(self._parameter_from_tokens(chunk))
        return parameters

    def _parameter_from_tokens(self, chunk: List[Token]) -> Parameter:
        loc = SourceSpan(chunk[0].loc.start, chunk[-1].loc.end)
        type_tokens = list(chunk)
        name: Optional[Identifier] = None
        last = type_tokens[-1]
        if (
            len(type_tokens) > 1
            and last.kind == "ident"
            and last.text not in _PARAMETER_KEYWORDS
            and type_tokens[-2].text != "."
        ):
            name = Identifier(last.text, last.loc)
            type_tokens.pop()

        storage: Optional[str] = None
        indexed = False
        while len(type_tokens) > 1 and (type_tokens[-1].text in _DATA_LOCATIONS or type_tokens[-1].text == "indexed"):
            keyword = type_tokens.pop().text
            if keyword == "indexed":
                indexed = True
            else:
                storage = keyword

        type_name = self.source[type_tokens[0].loc.start:type_tokens[-1].loc.end]
        return Parameter(loc=loc, type_name=type_name, name=name, storage=storage, indexed=indexed)

    # ---------------- declarations ----------------

    def parse_source_unit(self) -> List[SourcePart]:
        parts: List[SourcePart] = []
        while self._peek() is not None:
            part = self._parse_part(in_contract=False)
            if part is not None:
                parts.append(part)
        return parts

    def _parse_part(self, *, in_contract: bool) -> Optional[SourcePart]:
        token = self._peek()
        if token is None:
            raise SolidityParseError("Unexpected end of input", len(self.source))
        if token.text == ";":
            self.pos += 1
            return None
        if token.kind != "ident":
            raise SolidityParseError(f"Unexpected '{token.text}'", token.loc.start)

        word = token.text
        if word in ("pragma", "import", "using"):
            self._skip_statement()
            return None
        if word in ("contract", "interface", "library", "abstract"):
            if in_contract:
                raise SolidityParseError(f"Unexpected '{word}' inside a contract body", token.loc.start)
            return self._parse_contract()
        if word == "function":
            # `function (uint) external f;` declares a function-typed variable;
            # `function () external payable {}` is a legacy unnamed fallback.
            if self._at("(", 1) and not self._body_ahead():
                return self._parse_variable()
            return self._parse_function()
        if in_contract and word in ("constructor", "fallback", "receive") and self._at("(", 1):
            return self._parse_function()
        if in_contract and word == "modifier" and self._at_ident(1):
            return self._parse_function()
        if word == "struct" and self._at_ident(1):
            return self._parse_struct()
        if word == "enum" and self._at_ident(1):
            return self._parse_enum()
        if word == "event" and self._at_ident(1) and self._at("(", 2):
            return self._parse_event()
        if word == "error" and self._at_ident(1) and self._at("(", 2):
            return self._parse_error()
        if word == "type" and self._at_ident(1) and self._at("is", 2):
            return self._parse_type()
        return self._parse_variable()

    def _parse_contract(self) -> ContractDefinition:
        first = self._next()
        ty = first.text
        if ty == "abstract":
            self._expect("contract")
        name = self._expect_ident()

        bases: List[str] = []
        if self._at("is"):
            self.pos += 1
            bases = self._parse_base_list()
        # Anything else before the body (e.g. a storage layout specifier) is skipped.
        while not self._at("{"):
            if self._at("(") or self._at("["):
                self._skip_group()
            else:
                self._next()

        self._expect("{")
        parts: List[SourcePart] = []
        while not self._at("}"):
            if self._peek() is None:
                raise SolidityParseError(f"Unterminated body of '{name.name}'", len(self.source))
            part = self._parse_part(in_contract=True)
            if part is not None:
                parts.append(part)
        end = self._expect("}")
        return ContractDefinition(
            name=name,
            ty=ty,  # type: ignore[arg-type]
            loc=SourceSpan(first.loc.start, end.loc.end),
            bases=bases,
            parts=parts,
        )

    def _parse_base_list(self) -> List[str]:
        bases: List[str] = []
        while True:
            path = [self._expect_ident().name]
            while self._at("."):
                self.pos += 1
                path.append(self._expect_ident().name)
            bases.append(".".join(path))
            if self._at("("):
                self._skip_group()
            if not self._at(","):
                return bases
            self.pos += 1

    def _parse_function(self) -> FunctionDefinition:
        keyword = self._next()
        ty = keyword.text
        name: Optional[Identifier] = None
        if ty == "modifier" or (ty == "function" and self._at_ident()):
            name = self._expect_ident()

        params: List[Parameter] = []
        if ty != "modifier" or self._at("("):
            params = self._parameter_list()

        returns: List[Parameter] = []
        visibility: Optional[str] = None
        mutability: Optional[str] = None
        is_virtual = False
        overrides: Optional[List[str]] = None
        modifiers: List[str] = []
        has_body = False

        while True:
            token = self._next()
            text = token.text
            if text == ";":
                end = token.loc.end
                break
            if text == "{":
                self.pos -= 1
                end = self._skip_group()[-1].loc.end
                has_body = True
                break
            if token.kind != "ident":
                raise SolidityParseError(f"Unexpected '{text}' in function header", token.loc.start)
            if text == "returns":
                returns = self._parameter_list()
            elif text in _VISIBILITIES:
                visibility = text
            elif text in _MUTABILITIES:
                mutability = text
            elif text == "virtual":
                is_virtual = True
            elif text == "override":
                overrides = _dotted_names(self._skip_group()[1:-1]) if self._at("(") else []
            else:
                path = [text]
                while self._at("."):
                    self.pos += 1
                    path.append(self._expect_ident().name)
                if self._at("("):
                    self._skip_group()
                modifiers.append(".".join(path))

        return FunctionDefinition(
            ty=ty,  # type: ignore[arg-type]
            loc=SourceSpan(keyword.loc.start, end),
            name=name,
            params=params,
            returns=returns,
            visibility=visibility,
            mutability=mutability,
            is_virtual=is_virtual,
            overrides=overrides,
            modifiers=modifiers,
            has_body=has_body,
        )

    def _parse_struct(self) -> StructDefinition:
        keyword = self._next()
        name = self._expect_ident()
        if not self._at("{"):
            self._expect("{")
        group = self._skip_group()
        fields = [
            self._parameter_from_tokens(chunk)
            for chunk in _split_top_level(group[1:-1], ";")
            if chunk
        ]
        return StructDefinition(name=name, loc=SourceSpan(keyword.loc.start, group[-1].loc.end), fields=fields)

    def _parse_enum(self) -> EnumDefinition:
        keyword = self._next()
        name = self._expect_ident()
        if not self._at("{"):
            self._expect("{")
        group = self._skip_group()
        values: List[Identifier] = []
        for chunk in _split_top_level(group[1:-1], ","):
            if len(chunk) != 1 or chunk[0].kind != "ident":
                offset = chunk[0].loc.start if chunk else group[0].loc.start
                raise SolidityParseError(f"Invalid value in enum '{name.name}'", offset)
            values.append(Identifier(chunk[0].text, chunk[0].loc))
        return EnumDefinition(name=name, loc=SourceSpan(keyword.loc.start, group[-1].loc.end), values=values)

    def _parse_error(self) -> ErrorDefinition:
        keyword = self._next()
        name = self._expect_ident()
        fields = self._parameter_list()
        end = self._expect(";")
        return ErrorDefinition(name=name, loc=SourceSpan(keyword.loc.start, end.loc.end), fields=fields)

    def _parse_event(self) -> EventDefinition:
        keyword = self._next()
        name = self._expect_ident()
        fields = self._parameter_list()
        anonymous = False
        if self._at("anonymous"):
            self.pos += 1
            anonymous = True
        end = self._expect(";")
        return EventDefinition(
            name=name,
            loc=SourceSpan(keyword.loc.start, end.loc.end),
            fields=fields,
            anonymous=anonymous,
        )

    def _parse_type(self) -> TypeDefinition:
        keyword = self._next()
        name = self._expect_ident()
        self._expect("is")
        start_index = self.pos
        end = self._skip_statement()
        underlying_tokens = self.tokens[start_index:self.pos - 1]
        if not underlying_tokens:
            raise SolidityParseError(f"Missing underlying type for '{name.name}'", end.loc.start)
        underlying = self.source[underlying_tokens[0].loc.start:underlying_tokens[-1].loc.end]
        return TypeDefinition(name=name, underlying=underlying, loc=SourceSpan(keyword.loc.start, end.loc.end))

    def _parse_variable(self) -> VariableDefinition:
        start_index = self.pos
        end = self._skip_statement()
        tokens = self.tokens[start_index:self.pos - 1]
        declaration = _split_top_level(tokens, "=")[0] if tokens else []

        top_level: List[Tuple[int, Token]] = []
        depth = 0
        for index, token in enumerate(declaration):
            if token.kind == "punct":
                if token.text in _CLOSERS:
                    depth += 1
                elif token.text in _CLOSING:
                    depth -= 1
                continue
            if depth == 0 and token.kind == "ident":
                top_level.append((index, token))

        attributes = [(index, token) for index, token in top_level if index > 0 and token.text in _VARIABLE_ATTRIBUTES]
        candidates = [(index, token) for index, token in top_level if token.text not in _VARIABLE_ATTRIBUTES]
        if not candidates or candidates[-1][0] == 0 or declaration[candidates[-1][0] - 1].text == ".":
            offset = declaration[0].loc.start if declaration else end.loc.start
            raise SolidityParseError("Expected a declaration", offset)
        name_index, name_token = candidates[-1]

        type_end = min([index for index, _ in attributes] + [name_index])
        type_name = self.source[declaration[0].loc.start:declaration[type_end - 1].loc.end]

        visibility: Optional[str] = None
        overrides: Optional[List[str]] = None
        words = set()
        for index, token in attributes:
            words.add(token.text)
            if token.text in _VISIBILITIES:
                visibility = token.text
            elif token.text == "override":
                overrides = []
                if index + 1 < len(declaration) and declaration[index + 1].text == "(":
                    closing = next(
                        position
                        for position in range(index + 1, len(declaration))
                        if declaration[position].text == ")"
                    )
                    overrides = _dotted_names(declaration[index + 2:closing])

        return VariableDefinition(
            name=Identifier(name_token.text, name_token.loc),
            type_name=type_name,
            loc=SourceSpan(declaration[0].loc.start, end.loc.end),
            visibility=visibility,
            is_constant="constant" in words,
            is_immutable="immutable" in words,
            overrides=overrides,
        )


def parse_solidity(source: str) -> SourceUnit:
    """
    Parse Solidity source into a SourceUnit. Raises SolidityParseError when the
    file is not well-formed at declaration level.
    """
    tokens, comments = tokenize(source)
    parts = _SolidityParser(source, tokens).parse_source_unit()
    return SourceUnit(parts=parts, tokens=tokens, comments=comments)


# ============================================================
# =================== DECLARATION TREE =======================
# ============================================================

@dataclass
class ParseItem:
    """
    One declaration, its comment block, and the declarations nested inside it
    (a contract's members). The tree holds no parent pointers; the engine
    passes the parent down while walking.
    """
    source: SourcePart
    comments: CommentBlock = field(default_factory=CommentBlock)
    children: List["ParseItem"] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return self.source.KIND

    @property
    def loc(self) -> SourceSpan:
        return self.source.loc

    def as_contract(self) -> Optional[ContractDefinition]:
        return self.source if isinstance(self.source, ContractDefinition) else None


def _comment_block_for(unit: SourceUnit, node: SourcePart) -> CommentBlock:
    groups: List[List[str]] = []
    previous_was_line = False
    for comment in unit.doc_comments_before(node.loc.start):
        lines = comment.doc_lines()
        if comment.kind == "doc_line" and previous_was_line:
            groups[-1].extend(lines)
        else:
            groups.append(lines)
        previous_was_line = comment.kind == "doc_line"
    return CommentBlock.from_doc_groups(groups)


def build_parse_items(unit: SourceUnit) -> List[ParseItem]:
    """
    Wrap every declaration of ``unit`` into a ParseItem carrying its comment
    block. Declarations inside a contract body become that contract's children.
    """
    roots: List[ParseItem] = []

    def visit(node: SourcePart, siblings: List[ParseItem]) -> None:
        item = ParseItem(source=node, comments=_comment_block_for(unit, node))
        siblings.append(item)
        for child in getattr(node, "parts", ()):
            visit(child, item.children)

    for part in unit.parts:
        visit(part, roots)
    return roots


# ============================================================
# =================== VIOLATION MODEL ========================
# ============================================================

ViolationKind = Literal[
    "MissingComment",
    "TooManyComments",
    "CommentNotAllowed",
    "MissingCommentFor",
    "OnlyInheritdoc",
    "ParseError",
]


@dataclass(frozen=True)
class ViolationError:
    """
    Closed taxonomy of findings. ``tag`` is set for the comment-count kinds,
    ``name`` for MissingCommentFor and ``message`` for ParseError.
    """
    kind: ViolationKind
    tag: Optional[CommentTag] = None
    name: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def missing_comment(cls, tag: CommentTag) -> "ViolationError":
        return cls("MissingComment", tag=tag)

    @classmethod
    def too_many_comments(cls, tag: CommentTag) -> "ViolationError":
        return cls("TooManyComments", tag=tag)

    @classmethod
    def comment_not_allowed(cls, tag: CommentTag) -> "ViolationError":
        return cls("CommentNotAllowed", tag=tag)

    @classmethod
    def missing_comment_for(cls, tag: CommentTag, name: str) -> "ViolationError":
        return cls("MissingCommentFor", tag=tag, name=name)

    @classmethod
    def only_inheritdoc(cls) -> "ViolationError":
        return cls("OnlyInheritdoc")

    @classmethod
    def parse_error(cls, message: str) -> "ViolationError":
        return cls("ParseError", message=message)

    def __str__(self) -> str:
        if self.kind == "MissingComment":
            return f"Missing a {self.tag} comment"
        if self.kind == "TooManyComments":
            return f"Too many {self.tag} comments"
        if self.kind == "CommentNotAllowed":
            return f"{self.tag} comments are not allowed on this construct"
        if self.kind == "MissingCommentFor":
            return f"Missing a {self.tag} comment for `{self.name}`"
        if self.kind == "OnlyInheritdoc":
            return "Inheritdoc comment must be the only comment"
        return f"Error while parsing: {self.message}"


@dataclass(frozen=True)
class Violation:
    rule_name: str
    rule_description: str
    error: ViolationError
    loc: SourceSpan


# ============================================================
# ====================== RULE MODEL ==========================
# ============================================================

RuleCheck = Callable[["Rule", Optional[ParseItem], Any, CommentBlock], Optional[Violation]]


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class Rule:
    """
    A single documentation rule.

    - name: identity used in reports and disable directives, e.g. "MissingNotice"
    - description: human text
    - scope: declaration kind the rule targets ("Contract", "Function", ...)
    - check_fn: called as check_fn(rule, parent, declaration, comments)
    - enabled_by_default: whether the default configuration turns it on

    Rules hold no state and may be shared between concurrent checks.
    """
    name: str
    description: str
    scope: str
    check_fn: RuleCheck = field(compare=False, repr=False)
    enabled_by_default: bool = True

    @property
    def config_key(self) -> str:
        return _snake_case(self.name)

    @property
    def config_section(self) -> str:
        return f"{self.scope.lower()}_rules"

    def check(self, parent: Optional[ParseItem], item: Any, comments: CommentBlock) -> Optional[Violation]:
        return self.check_fn(self, parent, item, comments)

    def violation(self, error: ViolationError, loc: SourceSpan) -> Violation:
        return Violation(self.name, self.description, error, loc)


def _check_required_tag(tag, rule, parent, item, comments):
    if not comments.include_tag(tag):
        return rule.violation(ViolationError.missing_comment(tag), item.loc)
    return None


def _check_forbidden_tag(tag, rule, parent, item, comments):
    if comments.include_tag(tag):
        return rule.violation(ViolationError.comment_not_allowed(tag), item.loc)
    return None


def _check_single_tag(tag, rule, parent, item, comments):
    if len(comments.include_tag(tag)) > 1:
        return rule.violation(ViolationError.too_many_comments(tag), item.loc)
    return None


def _check_inherited_required_tag(tag, rule, parent, item, comments):
    # An @inheritdoc member is documented by its base.
    if comments.find_inheritdoc_base() is not None:
        return None
    return _check_required_tag(tag, rule, parent, item, comments)


def _check_correspondence(
    rule: Rule,
    item: Any,
    comments: CommentBlock,
    tag: CommentTag,
    elements: Sequence[Tuple[Optional[str], SourceSpan]],
    *,
    unnamed_message: Optional[str] = None,
) -> Optional[Violation]:
    """
    Reconcile ``tag`` entries with the formal elements (name, span) of a
    declaration, matching each element name against the first word of a tag.

    Surplus tags are reported at the declaration. With too few tags, the first
    named element nobody documents is reported at its own span, falling back to
    the declaration when only anonymous elements are left undocumented. With
    matching counts, every named element must be documented. Anonymous elements
    are counted but not matched by name, unless ``unnamed_message`` is given,
    in which case they are reported as parse errors.
    """
    documented = comments.include_tag(tag)
    documented_names = {entry.split_first_word()[0] for entry in documented}

    if len(documented) > len(elements):
        return rule.violation(ViolationError.too_many_comments(tag), item.loc)

    for name, loc in elements:
        if name is None:
            if unnamed_message is not None:
                return rule.violation(ViolationError.parse_error(unnamed_message), loc)
            continue
        if name not in documented_names:
            return rule.violation(ViolationError.missing_comment_for(tag, name), loc)

    if len(documented) < len(elements):
        return rule.violation(ViolationError.missing_comment(tag), item.loc)
    return None


def _parameter_elements(parameters: Sequence[Parameter], *, at_name: bool = False) -> List[Tuple[Optional[str], SourceSpan]]:
    elements: List[Tuple[Optional[str], SourceSpan]] = []
    for parameter in parameters:
        if parameter.name is None:
            elements.append((None, parameter.loc))
        else:
            elements.append((parameter.name.name, parameter.name.loc if at_name else parameter.loc))
    return elements


def _check_function_params(rule, parent, func: FunctionDefinition, comments):
    if func.ty in ("fallback", "receive"):
        return None
    if comments.find_inheritdoc_base() is not None:
        return None
    return _check_correspondence(rule, func, comments, TAG_PARAM, _parameter_elements(func.params))


def _check_function_returns(rule, parent, func: FunctionDefinition, comments):
    if func.ty != "function":
        return None
    if comments.find_inheritdoc_base() is not None:
        return None
    return _check_correspondence(rule, func, comments, TAG_RETURN, _parameter_elements(func.returns))


def _check_function_inheritdoc(rule, parent, func: FunctionDefinition, comments):
    contract = parent.as_contract() if parent is not None else None
    if contract is None or not contract.is_concrete:
        return None
    if func.ty != "function" or not func.is_public_interface:
        return None
    return _check_required_tag(TAG_INHERITDOC, rule, parent, func, comments)


def _check_variable_inheritdoc(rule, parent, var: VariableDefinition, comments):
    contract = parent.as_contract() if parent is not None else None
    if contract is None or not contract.is_concrete:
        return None
    if not var.is_public_interface:
        return None
    return _check_required_tag(TAG_INHERITDOC, rule, parent, var, comments)


def _check_only_inheritdoc(rule, parent, func: FunctionDefinition, comments):
    if comments.find_inheritdoc_base() is not None and len(comments) > 1:
        return rule.violation(ViolationError.only_inheritdoc(), func.loc)
    return None


def _check_named_fields(rule, parent, item, comments):
    # Struct fields and error parameters must be named to be documented.
    return _check_correspondence(
        rule,
        item,
        comments,
        TAG_PARAM,
        _parameter_elements(item.fields, at_name=True),
        unnamed_message="Field name could not be parsed",
    )


def _check_event_fields(rule, parent, item: EventDefinition, comments):
    return _check_correspondence(rule, item, comments, TAG_PARAM, _parameter_elements(item.fields, at_name=True))


def _check_enum_variants(rule, parent, item: EnumDefinition, comments):
    elements = [(value.name, value.loc) for value in item.values]
    return _check_correspondence(rule, item, comments, TAG_VARIANT, elements)


# ============================================================
# ===================== RULE CATALOG =========================
# ============================================================

def _article(word: str) -> str:
    return "an" if word[:1] in ("a", "e", "i", "o", "u") else "a"


def _tag_title(tag: CommentTag) -> str:
    return tag.name.split(":")[-1].capitalize()


def _missing_tag_rule(scope: str, noun: str, tag: CommentTag, *, enabled: bool = True) -> Rule:
    return Rule(
        name=f"Missing{_tag_title(tag)}",
        description=f"{noun} must have {_article(tag.name)} {tag.name} comment.",
        scope=scope,
        check_fn=functools.partial(_check_required_tag, tag),
        enabled_by_default=enabled,
    )


def _no_tag_rule(scope: str, noun: str, tag: CommentTag, *, enabled: bool = True) -> Rule:
    return Rule(
        name=f"No{_tag_title(tag)}",
        description=f"{noun} must not have {_article(tag.name)} {tag.name} comment.",
        scope=scope,
        check_fn=functools.partial(_check_forbidden_tag, tag),
        enabled_by_default=enabled,
    )


def _too_many_rule(scope: str, noun: str, tag: CommentTag, *, enabled: bool = True) -> Rule:
    return Rule(
        name=f"TooMany{_tag_title(tag)}",
        description=f"{noun} must not have more than one {tag.name} comment.",
        scope=scope,
        check_fn=functools.partial(_check_single_tag, tag),
        enabled_by_default=enabled,
    )


ALL_RULES: Tuple[Rule, ...] = (
    # Contracts
    _missing_tag_rule("Contract", "Contracts", TAG_AUTHOR, enabled=False),
    _missing_tag_rule("Contract", "Contracts", TAG_NOTICE),
    _missing_tag_rule("Contract", "Contracts", TAG_TITLE),
    _no_tag_rule("Contract", "Contracts", TAG_INHERITDOC),
    _no_tag_rule("Contract", "Contracts", TAG_PARAM),
    _no_tag_rule("Contract", "Contracts", TAG_RETURN),
    _too_many_rule("Contract", "Contracts", TAG_NOTICE),
    _too_many_rule("Contract", "Contracts", TAG_TITLE),
    # Enums
    _missing_tag_rule("Enum", "Enums", TAG_AUTHOR, enabled=False),
    _missing_tag_rule("Enum", "Enums", TAG_NOTICE),
    _missing_tag_rule("Enum", "Enums", TAG_TITLE, enabled=False),
    Rule("MissingVariant", "Enums must document all variants.", "Enum", _check_enum_variants),
    _no_tag_rule("Enum", "Enums", TAG_INHERITDOC),
    _no_tag_rule("Enum", "Enums", TAG_PARAM),
    _no_tag_rule("Enum", "Enums", TAG_RETURN),
    _too_many_rule("Enum", "Enums", TAG_NOTICE),
    _too_many_rule("Enum", "Enums", TAG_TITLE),
    # Errors
    _missing_tag_rule("Error", "Errors", TAG_NOTICE),
    Rule("MissingParam", "Errors must document all parameters.", "Error", _check_named_fields),
    _no_tag_rule("Error", "Errors", TAG_AUTHOR),
    _no_tag_rule("Error", "Errors", TAG_INHERITDOC),
    _no_tag_rule("Error", "Errors", TAG_RETURN),
    _no_tag_rule("Error", "Errors", TAG_TITLE),
    _too_many_rule("Error", "Errors", TAG_NOTICE),
    # Events
    _missing_tag_rule("Event", "Events", TAG_NOTICE),
    Rule("MissingParam", "Events must document all parameters.", "Event", _check_event_fields),
    _no_tag_rule("Event", "Events", TAG_AUTHOR),
    _no_tag_rule("Event", "Events", TAG_INHERITDOC),
    _no_tag_rule("Event", "Events", TAG_RETURN),
    _no_tag_rule("Event", "Events", TAG_TITLE),
    _too_many_rule("Event", "Events", TAG_NOTICE),
    # Functions
    Rule(
        "MissingInheritdoc",
        "Public and override functions must have an inheritdoc comment.",
        "Function",
        _check_function_inheritdoc,
    ),
    Rule(
        "MissingNotice",
        "Functions must have a notice or an inheritdoc comment.",
        "Function",
        functools.partial(_check_inherited_required_tag, TAG_NOTICE),
    ),
    Rule(
        "MissingParams",
        "Functions must have their parameters documented or have an inheritdoc comment.",
        "Function",
        _check_function_params,
    ),
    Rule(
        "MissingReturn",
        "Functions must have their return variables documented or have an inheritdoc comment.",
        "Function",
        _check_function_returns,
    ),
    _no_tag_rule("Function", "Functions", TAG_AUTHOR),
    _no_tag_rule("Function", "Functions", TAG_TITLE),
    Rule(
        "OnlyInheritdoc",
        "If a function has an inheritdoc comment, then it must be the only comment.",
        "Function",
        _check_only_inheritdoc,
        enabled_by_default=False,
    ),
    _too_many_rule("Function", "Functions", TAG_INHERITDOC),
    _too_many_rule("Function", "Functions", TAG_NOTICE),
    # Structs
    _missing_tag_rule("Struct", "Structs", TAG_AUTHOR, enabled=False),
    _missing_tag_rule("Struct", "Structs", TAG_NOTICE),
    Rule("MissingParams", "Structs must document all parameters.", "Struct", _check_named_fields),
    _missing_tag_rule("Struct", "Structs", TAG_TITLE, enabled=False),
    _no_tag_rule("Struct", "Structs", TAG_INHERITDOC),
    _no_tag_rule("Struct", "Structs", TAG_RETURN),
    _too_many_rule("Struct", "Structs", TAG_NOTICE),
    _too_many_rule("Struct", "Structs", TAG_TITLE),
    # Variables
    Rule(
        "MissingInheritdoc",
        "Public and override variables must have an inheritdoc comment.",
        "Variable",
        _check_variable_inheritdoc,
    ),
    Rule(
        "MissingNotice",
        "Variables must have a notice or an inheritdoc comment.",
        "Variable",
        functools.partial(_check_inherited_required_tag, TAG_NOTICE),
    ),
    _no_tag_rule("Variable", "Variables", TAG_AUTHOR),
    _no_tag_rule("Variable", "Variables", TAG_PARAM),
    _no_tag_rule("Variable", "Variables", TAG_RETURN),
    _no_tag_rule("Variable", "Variables", TAG_TITLE),
    _too_many_rule("Variable", "Variables", TAG_INHERITDOC),
    _too_many_rule("Variable", "Variables", TAG_NOTICE),
    # User-defined value types
    _missing_tag_rule("Type", "Types", TAG_NOTICE),
    _no_tag_rule("Type", "Types", TAG_AUTHOR),
    _no_tag_rule("Type", "Types", TAG_INHERITDOC),
    _no_tag_rule("Type", "Types", TAG_PARAM),
    _no_tag_rule("Type", "Types", TAG_RETURN),
    _no_tag_rule("Type", "Types", TAG_TITLE),
    _too_many_rule("Type", "Types", TAG_NOTICE),
)


def default_rules() -> List[Rule]:
    return [rule for rule in ALL_RULES if rule.enabled_by_default]


def find_rule(scope: str, name: str) -> Rule:
    for rule in ALL_RULES:
        if rule.scope == scope and rule.name == name:
            return rule
    raise KeyError(f"{scope}.{name}")


# ============================================================
# ===================== RULE ENGINE ==========================
# ============================================================

class RuleEngine:
    """
    The RuleEngine will:
    - take the active rules, keeping their registration order
    - index them by the declaration kind they target
    - walk a ParseItem tree pre-order, handing each rule its item and parent
    - emit Violations
    """

    def __init__(self, rules: Sequence[Rule]) -> None:
        self.rules = list(rules)
        self._rules_by_scope: Dict[str, List[Rule]] = {}
        for rule in self.rules:
            if rule.scope not in DECLARATION_KINDS:
                raise ValueError(f"Rule {rule.name} targets unknown declaration kind {rule.scope!r}")
            self._rules_by_scope.setdefault(rule.scope, []).append(rule)

    def rules_for(self, kind: str) -> List[Rule]:
        return list(self._rules_by_scope.get(kind, ()))

    def check_item(self, item: ParseItem, parent: Optional[ParseItem] = None) -> List[Violation]:
        violations: List[Violation] = []
        for rule in self._rules_by_scope.get(item.kind, ()):
            violation = rule.check(parent, item.source, item.comments)
            if violation is not None:
                violations.append(violation)
        return violations

    def evaluate(self, items: Sequence[ParseItem]) -> List[Violation]:
        """Check every item, parents before children, rules in registration order."""
        violations: List[Violation] = []

        def walk(item: ParseItem, parent: Optional[ParseItem]) -> None:
            violations.extend(self.check_item(item, parent))
            for child in item.children:
                walk(child, item)

        for item in items:
            walk(item, None)
        return violations


def build_and_check(source: str, rules: Sequence[Rule]) -> List[Tuple[Violation, int]]:
    """
    Parse ``source``, build its declaration tree and run ``rules`` over it.
    Returns (violation, UTF-8 byte offset) pairs in traversal order; raises
    SolidityParseError if the source cannot be parsed.
    """
    items = build_parse_items(parse_solidity(source))
    return [
        (violation, byte_offset(source, violation.loc.start))
        for violation in RuleEngine(rules).evaluate(items)
    ]


def byte_offset(source: str, offset: int) -> int:
    """UTF-8 byte position of the character ``offset`` in ``source``."""
    return len(source[:offset].encode("utf-8"))


# ============================================================
# ================= LINES & DISABLE DIRECTIVES ===============
# ============================================================

class LineIndex:
    """Maps character offsets to 1-based (line, column) pairs."""

    def __init__(self, source: str) -> None:
        self._line_starts = [0] + [match.end() for match in re.finditer(r"\n", source)]

    def line_col(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1


_DISABLE_DIRECTIVE = re.compile(r"//\s*natlint-disable-next-line(?:[ \t]+([\w \t,]+))?")


def disable_next_line_directives(source: str) -> Dict[int, Optional[FrozenSet[str]]]:
    """
    Collect ``// natlint-disable-next-line [Rule, ...]`` directives, keyed by
    the 1-based number of the line they silence. A value of None silences
    every rule on that line.
    """
    directives: Dict[int, Optional[FrozenSet[str]]] = {}
    for index, line in enumerate(source.splitlines()):
        match = _DISABLE_DIRECTIVE.search(line)
        if match is None:
            continue
        names = [name for name in re.split(r"[,\s]+", match.group(1) or "") if name]
        directives[index + 2] = frozenset(names) if names else None
    return directives


def _is_disabled(directives: Dict[int, Optional[FrozenSet[str]]], line: int, rule_name: str) -> bool:
    if line not in directives:
        return False
    names = directives[line]
    return names is None or rule_name in names


def _resolve_violations(source: str, rules: Sequence[Rule]) -> List[Tuple[Violation, int, int]]:
    index = LineIndex(source)
    directives = disable_next_line_directives(source)
    resolved: List[Tuple[Violation, int, int]] = []
    for violation, _ in build_and_check(source, rules):
        line, column = index.line_col(violation.loc.start)
        if _is_disabled(directives, line, violation.rule_name):
            continue
        resolved.append((violation, line, column))
    return resolved


def lint(source: str, rules: Sequence[Rule]) -> List[Tuple[Violation, int]]:
    """Lint a source string; returns (violation, 1-based line) pairs after disable directives."""
    return [(violation, line) for violation, line, _ in _resolve_violations(source, rules)]


@dataclass(frozen=True)
class ReportedViolation:
    file: str
    line: int
    column: int
    violation: Violation
    start: int = 0  # UTF-8 byte offsets of the violation span
    end: int = 0


def lint_file(path: str, rules: Sequence[Rule]) -> List[ReportedViolation]:
    """
    Lint one file. Raises LintError when the file cannot be read and
    SolidityParseError when it cannot be parsed.
    """
    try:
        with open(path, "r", encoding="utf-8") as handle:
            source = handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise LintError(f"Could not read {path}: {exc}") from exc
    return [
        ReportedViolation(
            file=path,
            line=line,
            column=column,
            violation=violation,
            start=byte_offset(source, violation.loc.start),
            end=byte_offset(source, violation.loc.end),
        )
        for violation, line, column in _resolve_violations(source, rules)
    ]


def sort_violations(reported: Sequence[ReportedViolation]) -> List[ReportedViolation]:
    return sorted(reported, key=lambda r: (r.file, r.line, r.violation.rule_name))


# ============================================================
# ==================== CONFIGURATION =========================
# ============================================================

DEFAULT_CONFIG_FILE = "natlint.yaml"


def _default_sections() -> Dict[str, Dict[str, bool]]:
    sections: Dict[str, Dict[str, bool]] = {}
    for rule in ALL_RULES:
        sections.setdefault(rule.config_section, {})[rule.config_key] = rule.enabled_by_default
    return sections


@dataclass
class Config:
    """
    Which rules are enabled, laid out the way the YAML file is:

        function_rules:
          only_inheritdoc: true
        contract_rules:
          missing_author: true

    Sections and keys that are not mentioned keep their catalog default.
    """
    sections: Dict[str, Dict[str, bool]] = field(default_factory=_default_sections)

    @classmethod
    def from_mapping(cls, data: Any, origin: str = "<config>") -> "Config":
        config = cls()
        if data is None:
            return config
        if not isinstance(data, dict):
            raise ConfigError(f"{origin}: expected a mapping of rule sections")

        for section_name, section in data.items():
            known = config.sections.get(section_name)
            if known is None:
                sys.stderr.write(f"[natlint] Ignoring unknown config section '{section_name}' in {origin}.\n")
                continue
            if section is None:
                continue
            if not isinstance(section, dict):
                raise ConfigError(f"{origin}: section '{section_name}' must be a mapping of rule names to booleans")
            for key, value in section.items():
                if key not in known:
                    sys.stderr.write(f"[natlint] Ignoring unknown rule '{section_name}.{key}' in {origin}.\n")
                    continue
                if not isinstance(value, bool):
                    raise ConfigError(f"{origin}: '{section_name}.{key}' must be true or false, got {value!r}")
                known[key] = value
        return config

    @classmethod
    def from_file(cls, path: str) -> "Config":
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except FileNotFoundError as exc:
            raise ConfigError(f"Config file not found: {path}") from exc
        except OSError as exc:
            raise ConfigError(f"Could not read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        return cls.from_mapping(data, origin=path)

    def is_enabled(self, rule: Rule) -> bool:
        return self.sections.get(rule.config_section, {}).get(rule.config_key, rule.enabled_by_default)

    def rule_set(self) -> List[Rule]:
        return [rule for rule in ALL_RULES if self.is_enabled(rule)]

    def to_yaml(self) -> str:
        header = "# natlint configuration: set a rule to false to disable it.\n"
        return header + yaml.safe_dump(self.sections, sort_keys=False, default_flow_style=False)


def load_config(path: str) -> Config:
    """
    Load ``path`` if it exists; otherwise fall back to the default rule set so
    a project without a config file still gets linted.
    """
    if not os.path.exists(path):
        sys.stderr.write(f"[natlint] Config file {path} not found; using default rules.\n")
        return Config()
    return Config.from_file(path)


# ============================================================
# =================== FILE DISCOVERY =========================
# ============================================================

def find_matching_files(root: str, includes: Sequence[str], excludes: Sequence[str]) -> List[str]:
    """
    Expand ``includes`` globs under ``root`` and drop any file whose
    root-relative path matches an ``excludes`` pattern.
    """
    matches: Set[str] = set()
    for pattern in includes:
        for path in glob.glob(os.path.join(root, pattern), recursive=True):
            if not os.path.isfile(path):
                continue
            relative = os.path.relpath(path, root).replace(os.sep, "/")
            if any(fnmatch.fnmatch(relative, exclude) for exclude in excludes):
                continue
            matches.add(os.path.normpath(path))
    return sorted(matches)


# ============================================================
# ==================== VIOLATION OUTPUT ======================
# ============================================================

def violation_to_json_obj(reported: ReportedViolation) -> Dict[str, Any]:
    """
    Convert a ReportedViolation into a JSON-friendly dict with a stable field
    order.
    """
    violation = reported.violation
    error = violation.error
    return {
        "rule": violation.rule_name,
        "description": violation.rule_description,
        "error": {
            "kind": error.kind,
            "tag": str(error.tag) if error.tag is not None else None,
            "name": error.name,
            "message": str(error),
        },
        "location": {
            "file": reported.file,
            "line": reported.line,
            "column": reported.column,
            "start": reported.start,
            "end": reported.end,
        },
        "tool": "natlint",
        "version": __version__,
    }


def _write_output(text: str, out: Optional[str]) -> None:
    if out:
        with open(out, "w", encoding="utf-8") as handle:
            handle.write(text + "\n")
    else:
        print(text)


def emit_violations_json(reported: Sequence[ReportedViolation], out: Optional[str] = None) -> None:
    as_json = [violation_to_json_obj(r) for r in reported]
    _write_output(json.dumps(as_json, indent=2, sort_keys=False), out)


def format_text_report(reported: Sequence[ReportedViolation], file_count: int, error_count: int = 0) -> str:
    if not reported:
        lines = ["No natspec violations found!"]
    else:
        lines = ["Natspec violations found:"]
        current_file: Optional[str] = None
        for r in reported:
            if r.file != current_file:
                lines.append("")
                lines.append(f"File: {r.file}")
                current_file = r.file
            lines.append(
                f"  [{r.violation.rule_name}] Line {r.line}: {r.violation.rule_description} ({r.violation.error})"
            )
        lines.append("")
        lines.append(f"Found {len(reported)} natspec violations in {file_count} files.")
    if error_count:
        lines.append(f"Failed to process {error_count} files due to errors.")
    return "\n".join(lines)


# ============================================================
# ============================ CLI ===========================
# ============================================================

def _cmd_run(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        sys.stderr.write(f"[natlint] {exc}\n")
        return 2
    rules = config.rule_set()

    files = find_matching_files(args.root, args.include or ["**/*.sol"], args.exclude or [])
    if args.verbose:
        sys.stderr.write(f"[natlint] Found {len(files)} files to lint with {len(rules)} rules.\n")

    reported: List[ReportedViolation] = []
    error_count = 0
    for index, path in enumerate(files, start=1):
        if args.verbose:
            sys.stderr.write(f"[natlint] ({index}/{len(files)}) {path}\n")
        try:
            reported.extend(lint_file(path, rules))
        except LintError as exc:
            sys.stderr.write(f"[natlint] Error processing file {path}: {exc}\n")
            error_count += 1

    reported = sort_violations(reported)
    if args.format == "json":
        emit_violations_json(reported, out=args.out)
    else:
        _write_output(format_text_report(reported, len(files), error_count), args.out)
    return 1 if reported or error_count else 0


def _cmd_init(args: argparse.Namespace) -> int:
    if os.path.exists(args.config) and not args.force:
        sys.stderr.write(f"[natlint] {args.config} already exists; pass --force to overwrite it.\n")
        return 1
    with open(args.config, "w", encoding="utf-8") as handle:
        handle.write(Config().to_yaml())
    print(f"Wrote default configuration to {args.config}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point for Natlint.
    Intended usage:
      natlint run -c natlint.yaml -i "src/**/*.sol" -e "lib/**"
      natlint init
    """
    parser = argparse.ArgumentParser(
        prog="natlint",
        description="Natlint: NatSpec documentation linter for Solidity"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_p = subparsers.add_parser(
        "run",
        help="Lint Solidity files and report NatSpec violations."
    )
    run_p.add_argument(
        "--root",
        default=".",
        help="Directory the include/exclude globs are relative to.",
    )
    run_p.add_argument(
        "-i", "--include",
        nargs="+",
        action="extend",
        metavar="GLOB",
        help="Glob(s) selecting files to lint (default: **/*.sol).",
    )
    run_p.add_argument(
        "-e", "--exclude",
        nargs="+",
        action="extend",
        metavar="GLOB",
        help="Glob(s) of root-relative paths to skip, e.g. 'lib/**'.",
    )
    run_p.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"YAML configuration file (default: {DEFAULT_CONFIG_FILE}).",
    )
    run_p.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Report format.",
    )
    run_p.add_argument(
        "--out",
        metavar="OUT_FILE",
        help="Write the report to this file instead of stdout.",
    )
    run_p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print progress to stderr.",
    )

    init_p = subparsers.add_parser(
        "init",
        help="Write a configuration file with the default rule set."
    )
    init_p.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"Path of the configuration file to create (default: {DEFAULT_CONFIG_FILE}).",
    )
    init_p.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing file.",
    )

    args = parser.parse_args(argv)

    if args.command == "run":
        return _cmd_run(args)
    if args.command == "init":
        return _cmd_init(args)

    # unreachable if parser is correct
    return 1


if __name__ == "__main__":
    sys.exit(main())
