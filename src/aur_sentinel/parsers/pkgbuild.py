"""
Arch Linux PKGBUILD Parser.

Recovers the structure of a PKGBUILD (assignments, arrays, functions and
command invocations) without running any of it. Expansions are kept as
opaque spans; command substitution bodies are parsed so that the commands
they run can be inspected.

Any structural error is fatal: an incompletely parsed script must never be
scanned as if it were complete, so no partial tree is ever returned.
"""

import bisect
import logging
import re
from collections.abc import Callable

from aur_sentinel.exceptions import RecipeParseError
from aur_sentinel.models.dependency import parse_dependency, parse_optdepend
from aur_sentinel.models.recipe import (
    ArithmeticCommand,
    ArithmeticExpansion,
    Assignment,
    CaseArm,
    CaseClause,
    Command,
    CommandList,
    CommandSubstitution,
    ConditionalBranch,
    ForLoop,
    Fragment,
    FunctionDef,
    Group,
    HereDocument,
    IfClause,
    Literal,
    ParameterExpansion,
    Pipeline,
    Position,
    Recipe,
    Redirect,
    Redirected,
    Statement,
    WhileLoop,
    Word,
)
from aur_sentinel.models.version import parse_version

logger = logging.getLogger(__name__)

_WORD_BREAK = frozenset(" \t\n|&;<>()")
_RESERVED = frozenset(
    {
        "if", "then", "elif", "else", "fi", "for", "select", "while", "until",
        "do", "done", "case", "esac", "in", "function", "{", "}", "!", "[[", "]]",
    }
)
_SPECIAL_PARAMS = "@*#?-$!0123456789"
_EXTGLOB_PREFIXES = "@!+*?"

_TOKEN_RE = re.compile(r"\S+")
_BARE_WORD_RE = re.compile(r"[^\s|&;<>()'\"`\\$]+(?=[\s|&;<>()]|$)")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_ASSIGNMENT_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)(\[[^\]\n]*\])?(\+?)=")
_FUNCTION_NAME_RE = re.compile(r"[^\s|&;<>()'\"`\\$=]+")
_FUNCDEF_RE = re.compile(r"([^\s|&;<>()'\"`\\$=]+)[ \t]*\([ \t]*\)")
_EMPTY_PARENS_RE = re.compile(r"\([ \t]*\)")
_REDIRECT_RE = re.compile(r"(\d*)(&>>|&>|<<<|<<-|<<|<>|>>|>&|<&|>\||>|<)")
_TEST_OPERATOR_RE = re.compile(r"&&|\|\||[()<>|]")
_EXPANSION_NAME_RE = re.compile(r"[#!]?([A-Za-z_][A-Za-z0-9_]*|[@*#?$!0-9-])")


def _line_locator(text: str) -> Callable[[int], tuple[int, int]]:
    starts = [0] + [i + 1 for i, char in enumerate(text) if char == "\n"]

    def locate(offset: int) -> tuple[int, int]:
        index = bisect.bisect_right(starts, offset) - 1
        return index + 1, offset - starts[index] + 1

    return locate


class _Parts:
    """Collects word fragments, merging adjacent literal text."""

    def __init__(self):
        self._items: list[Fragment] = []
        self._text: list[str] = []

    def add_text(self, text: str) -> None:
        self._text.append(text)

    def add(self, part: Fragment) -> None:
        if isinstance(part, Literal):
            self._text.append(part.text)
            return
        self._flush()
        self._items.append(part)

    def _flush(self) -> None:
        if self._text:
            self._items.append(Literal("".join(self._text)))
            self._text = []

    def done(self) -> tuple[Fragment, ...]:
        self._flush()
        return tuple(self._items)


class _Parser:
    """
    Recursive-descent parser over the recipe text.

    One instance per parse call; backquote bodies get their own instance that
    shares the outer line locator so positions stay absolute.
    """

    def __init__(
        self,
        text: str,
        source: str,
        base: int = 0,
        locate: Callable[[int], tuple[int, int]] | None = None,
    ):
        self.text = text
        self.source = source
        self.pos = 0
        self.base = base
        self._locate = locate or _line_locator(text)
        # newline offset -> offset just past the here-document bodies queued on that line
        self._heredoc_resume: dict[int, int] = {}

    # ──────────────────────────────────────────────
    # Low-level helpers
    # ──────────────────────────────────────────────

    def _peek(self, ahead: int = 0) -> str:
        index = self.pos + ahead
        return self.text[index] if index < len(self.text) else ""

    def _startswith(self, prefix: str) -> bool:
        return self.text.startswith(prefix, self.pos)

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _position(self, pos: int | None = None) -> Position:
        offset = self.base + (self.pos if pos is None else pos)
        line, column = self._locate(offset)
        return Position(offset, line, column)

    def _error(self, message: str, pos: int | None = None) -> RecipeParseError:
        position = self._position(pos)
        return RecipeParseError(self.source, message, position.line, position.column, position.offset)

    def _preview(self) -> str:
        if self._at_end():
            return "end of file"
        match = _TOKEN_RE.match(self.text, self.pos)
        return match.group(0)[:20] if match else repr(self._peek())

    def _peek_reserved(self) -> str | None:
        match = _BARE_WORD_RE.match(self.text, self.pos)
        if match and match.group(0) in _RESERVED:
            return match.group(0)
        return None

    def _expect(self, word: str, open_pos: int, opener: str) -> None:
        if self._peek_reserved() != word:
            line = self._position(open_pos).line
            raise self._error(
                f"expected {word!r} to close {opener!r} from line {line}, found {self._preview()}"
            )
        self.pos += len(word)

    def _skip_blanks(self) -> None:
        while not self._at_end():
            if self._peek() in " \t":
                self.pos += 1
            elif self._startswith("\\\n"):
                self.pos += 2
            else:
                break

    def _skip_comment(self) -> None:
        if self._peek() == "#":
            end = self.text.find("\n", self.pos)
            self.pos = len(self.text) if end == -1 else end

    def _consume_newline(self) -> None:
        newline = self.pos
        self.pos += 1
        if newline in self._heredoc_resume:
            self.pos = self._heredoc_resume.pop(newline)

    def _skip_linebreaks(self) -> None:
        while True:
            self._skip_blanks()
            self._skip_comment()
            if self._peek() != "\n":
                break
            self._consume_newline()

    def _matching_paren(self, open_at: int, what: str) -> int:
        """Offset just past the ')' matching the '(' at ``open_at``."""
        depth = 0
        index = open_at
        while index < len(self.text):
            char = self.text[index]
            if char == "\\":
                index += 1
            elif char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return index + 1
            index += 1
        raise self._error(f"unterminated {what}", open_at)

    # ──────────────────────────────────────────────
    # Statement lists
    # ──────────────────────────────────────────────

    def parse(self) -> tuple[Statement, ...]:
        statements = self._statements()
        if not self._at_end():
            raise self._error(f"unexpected {self._preview()}")
        return statements

    def _statements(
        self,
        stop_words: frozenset[str] = frozenset(),
        close_paren: bool = False,
        in_case: bool = False,
    ) -> tuple[Statement, ...]:
        statements: list[Statement] = []
        while True:
            self._skip_linebreaks()
            if self._at_end():
                break
            if close_paren and self._peek() == ")":
                break
            if in_case and (self._startswith(";;") or self._startswith(";&")):
                break
            if self._peek_reserved() in stop_words:
                break

            statements.append(self._and_or())

            self._skip_blanks()
            self._skip_comment()
            if self._startswith(";;") or self._startswith(";&"):
                if in_case:
                    continue
                raise self._error(f"unexpected {self._preview()}")
            if self._peek() in (";", "&"):
                self.pos += 1
            elif self._peek() == "\n":
                self._consume_newline()
            elif self._at_end() or (close_paren and self._peek() == ")"):
                continue
            elif self._peek_reserved() not in stop_words:
                raise self._error(f"unexpected {self._preview()}")
        return tuple(statements)

    def _and_or(self) -> Statement:
        start = self._position()
        items = [self._pipeline()]
        operators: list[str] = []
        while True:
            self._skip_blanks()
            if not (self._startswith("&&") or self._startswith("||")):
                break
            operators.append(self.text[self.pos : self.pos + 2])
            self.pos += 2
            self._skip_linebreaks()
            items.append(self._pipeline())

        if not operators:
            return items[0]
        return CommandList(tuple(items), tuple(operators), start)

    def _pipeline(self) -> Statement:
        self._skip_blanks()
        start = self._position()
        negated = self._peek_reserved() == "!"
        if negated:
            self.pos += 1

        stages = [self._command()]
        while True:
            self._skip_blanks()
            if self._peek() != "|" or self._startswith("||"):
                break
            self.pos += 2 if self._startswith("|&") else 1
            self._skip_linebreaks()
            stages.append(self._command())

        if len(stages) == 1 and not negated:
            return stages[0]
        return Pipeline(tuple(stages), start, negated)

    # ──────────────────────────────────────────────
    # Commands
    # ──────────────────────────────────────────────

    def _command(self) -> Statement:
        self._skip_blanks()
        start = self.pos
        keyword = self._peek_reserved()

        if keyword == "function":
            return self._function_keyword()
        if keyword == "[[":
            return self._test_command()

        if keyword == "if":
            node = self._if_clause()
        elif keyword in ("while", "until"):
            node = self._while_loop(keyword)
        elif keyword in ("for", "select"):
            node = self._for_loop(keyword)
        elif keyword == "case":
            node = self._case_clause()
        elif keyword == "{":
            node = Group(self._braced("brace group"), self._position(start))
        elif keyword is not None:
            raise self._error(f"unexpected {keyword!r}")
        elif self._startswith("(("):
            end = self._matching_paren(self.pos, "arithmetic command")
            node = ArithmeticCommand(self.text[start:end], self._position(start))
            self.pos = end
        elif self._peek() == "(":
            node = self._subshell()
        else:
            match = _FUNCDEF_RE.match(self.text, self.pos)
            if match:
                return self._function_body(match.group(1), start, match.end())
            return self._simple_command()

        return self._with_redirects(node)

    def _with_redirects(self, node: Statement) -> Statement:
        redirects = []
        while True:
            self._skip_blanks()
            redirect = self._redirect()
            if redirect is None:
                break
            redirects.append(redirect)
        if not redirects:
            return node
        return Redirected(node, tuple(redirects), node.position)

    def _simple_command(self) -> Statement:
        start = self._position()
        assignments: list[Assignment] = []
        words: list[Word] = []
        redirects: list[Redirect] = []

        while True:
            self._skip_blanks()
            if self._startswith("<(") or self._startswith(">("):
                words.append(self._word())
                continue
            redirect = self._redirect()
            if redirect is not None:
                redirects.append(redirect)
                continue

            char = self._peek()
            if char == "(":
                # local/declare/readonly take array literals: `local arr=(a b)`
                if words and _ASSIGNMENT_RE.fullmatch(words[-1].raw) and self.text[self.pos - 1] == "=":
                    words[-1] = self._array_word(words[-1])
                    continue
                raise self._error("unexpected '('")
            if not char or char in "\n;&|)#":
                break
            if not words:
                assignment = self._assignment()
                if assignment is not None:
                    assignments.append(assignment)
                    continue
            words.append(self._word())

        if words or redirects:
            return Command(tuple(words), start, tuple(assignments), tuple(redirects))
        if len(assignments) == 1:
            return assignments[0]
        if assignments:
            return CommandList(tuple(assignments), (";",) * (len(assignments) - 1), start)
        raise self._error(f"unexpected {self._preview()}")

    def _assignment(self) -> Assignment | None:
        match = _ASSIGNMENT_RE.match(self.text, self.pos)
        if not match:
            return None

        position = self._position()
        name = match.group(1) + (match.group(2) or "")
        self.pos = match.end()
        if self._peek() == "(":
            value: Word | tuple[Word, ...] = self._array()
        elif not self._peek() or self._peek() in _WORD_BREAK:
            value = Word("", (), self._position())
        else:
            value = self._word()
        return Assignment(name, value, position, append=bool(match.group(3)))

    def _array(self) -> tuple[Word, ...]:
        open_pos = self.pos
        self.pos += 1
        elements: list[Word] = []
        while True:
            self._skip_linebreaks()
            if self._at_end():
                raise self._error("unterminated array", open_pos)
            if self._peek() == ")":
                self.pos += 1
                return tuple(elements)
            if self._peek() in _WORD_BREAK:
                raise self._error(f"unexpected {self._preview()} in array")
            elements.append(self._word())

    def _array_word(self, prefix: Word) -> Word:
        start = prefix.position.offset - self.base
        parts = _Parts()
        for part in prefix.parts:
            parts.add(part)
        parts.add_text("(")
        for index, element in enumerate(self._array()):
            if index:
                parts.add_text(" ")
            for part in element.parts:
                parts.add(part)
        parts.add_text(")")
        return Word(self.text[start : self.pos], parts.done(), prefix.position)

    def _test_command(self) -> Command:
        start = self.pos
        words = [self._word()]
        while True:
            self._skip_linebreaks()
            if self._at_end():
                raise self._error("unterminated '[['", start)
            if self._peek_reserved() == "]]":
                words.append(self._word())
                return Command(tuple(words), self._position(start))
            match = _TEST_OPERATOR_RE.match(self.text, self.pos)
            if match:
                words.append(Word(match.group(0), (Literal(match.group(0)),), self._position()))
                self.pos = match.end()
                continue
            words.append(self._word())

    # ──────────────────────────────────────────────
    # Functions and compound commands
    # ──────────────────────────────────────────────

    def _function_keyword(self) -> FunctionDef:
        start = self.pos
        self.pos += len("function")
        self._skip_blanks()
        match = _FUNCTION_NAME_RE.match(self.text, self.pos)
        if not match:
            raise self._error("expected a function name")
        self.pos = match.end()
        self._skip_blanks()
        parens = _EMPTY_PARENS_RE.match(self.text, self.pos)
        return self._function_body(match.group(0), start, parens.end() if parens else self.pos)

    def _function_body(self, name: str, start: int, body_at: int) -> FunctionDef:
        self.pos = body_at
        self._skip_linebreaks()
        position = self._position(start)

        if self._peek_reserved() == "{":
            group_at = self._position()
            body: tuple[Statement, ...] = self._braced(f"body of function {name!r}")
        elif self._peek() == "(" and not self._startswith("(("):
            group_at = self._position()
            body = (self._subshell(),)
        else:
            raise self._error(f"expected '{{' to open the body of function {name!r}")

        redirected = self._with_redirects(Group(body, group_at))
        if isinstance(redirected, Redirected):
            body = (redirected,)

        logger.debug(f"[PKGBUILD] Function {name}() at line {position.line}")
        return FunctionDef(name, body, position)

    def _braced(self, what: str) -> tuple[Statement, ...]:
        open_pos = self.pos
        self.pos += 1
        body = self._statements(stop_words=frozenset({"}"}))
        if self._peek_reserved() != "}":
            raise self._error(f"unterminated {what}", open_pos)
        self.pos += 1
        return body

    def _subshell(self) -> Group:
        open_pos = self.pos
        self.pos += 1
        body = self._statements(close_paren=True)
        if self._peek() != ")":
            raise self._error("unterminated subshell", open_pos)
        self.pos += 1
        return Group(body, self._position(open_pos), subshell=True)

    def _if_clause(self) -> IfClause:
        open_pos = self.pos
        keyword = "if"
        branches: list[ConditionalBranch] = []
        orelse: tuple[Statement, ...] = ()
        while True:
            self.pos += len(keyword)
            condition = self._statements(stop_words=frozenset({"then"}))
            self._expect("then", open_pos, "if")
            body = self._statements(stop_words=frozenset({"elif", "else", "fi"}))
            branches.append(ConditionalBranch(condition, body))
            keyword = self._peek_reserved()
            if keyword != "elif":
                break

        if keyword == "else":
            self.pos += len("else")
            orelse = self._statements(stop_words=frozenset({"fi"}))
        self._expect("fi", open_pos, "if")
        return IfClause(tuple(branches), orelse, self._position(open_pos))

    def _while_loop(self, keyword: str) -> WhileLoop:
        open_pos = self.pos
        self.pos += len(keyword)
        condition = self._statements(stop_words=frozenset({"do"}))
        self._expect("do", open_pos, keyword)
        body = self._statements(stop_words=frozenset({"done"}))
        self._expect("done", open_pos, keyword)
        return WhileLoop(condition, body, self._position(open_pos), until=keyword == "until")

    def _for_loop(self, keyword: str) -> ForLoop:
        open_pos = self.pos
        self.pos += len(keyword)
        self._skip_blanks()
        variable: str | None = None
        items: tuple[Word, ...] | None = None
        header: str | None = None

        if self._startswith("(("):
            end = self._matching_paren(self.pos, "arithmetic for header")
            header = self.text[self.pos : end]
            self.pos = end
        else:
            match = _NAME_RE.match(self.text, self.pos)
            if not match:
                raise self._error(f"expected a loop variable after {keyword!r}")
            variable = match.group(0)
            self.pos = match.end()
            self._skip_linebreaks()
            if self._peek_reserved() == "in":
                self.pos += len("in")
                items = self._words_to_separator()

        self._skip_blanks()
        self._skip_comment()
        if self._peek() == ";":
            self.pos += 1
        self._skip_linebreaks()

        if self._peek_reserved() == "{":
            body = self._braced(f"{keyword} loop body")
        else:
            self._expect("do", open_pos, keyword)
            body = self._statements(stop_words=frozenset({"done"}))
            self._expect("done", open_pos, keyword)
        return ForLoop(variable, items, body, self._position(open_pos), header)

    def _words_to_separator(self) -> tuple[Word, ...]:
        words: list[Word] = []
        while True:
            self._skip_blanks()
            char = self._peek()
            if not char or char in ";\n#":
                return tuple(words)
            if char in _WORD_BREAK:
                raise self._error(f"unexpected {self._preview()}")
            words.append(self._word())

    def _case_clause(self) -> CaseClause:
        open_pos = self.pos
        self.pos += len("case")
        self._skip_blanks()
        subject = self._word()
        self._skip_linebreaks()
        self._expect("in", open_pos, "case")

        arms: list[CaseArm] = []
        while True:
            self._skip_linebreaks()
            if self._peek_reserved() == "esac" or self._at_end():
                break
            if self._peek() == "(":
                self.pos += 1
                self._skip_blanks()

            patterns = [self._word()]
            while True:
                self._skip_blanks()
                if self._peek() != "|":
                    break
                self.pos += 1
                self._skip_blanks()
                patterns.append(self._word())
            if self._peek() != ")":
                raise self._error(f"expected ')' after case pattern, found {self._preview()}")
            self.pos += 1

            body = self._statements(stop_words=frozenset({"esac"}), in_case=True)
            arms.append(CaseArm(tuple(patterns), body))
            terminator = next((t for t in (";;&", ";;", ";&") if self._startswith(t)), None)
            if terminator is None:
                break
            self.pos += len(terminator)

        self._skip_linebreaks()
        self._expect("esac", open_pos, "case")
        return CaseClause(subject, tuple(arms), self._position(open_pos))

    # ──────────────────────────────────────────────
    # Redirections and here-documents
    # ──────────────────────────────────────────────

    def _redirect(self) -> Redirect | None:
        match = _REDIRECT_RE.match(self.text, self.pos)
        if not match:
            return None
        fd, op = match.group(1) or None, match.group(2)
        self.pos = match.end()
        self._skip_blanks()
        if op in ("<<", "<<-"):
            return Redirect(op, self._heredoc(op), fd)
        process_substitution = self._startswith("<(") or self._startswith(">(")
        if not process_substitution and (not self._peek() or self._peek() in _WORD_BREAK):
            raise self._error(f"expected a target after {op!r}")
        return Redirect(op, self._word(), fd)

    def _heredoc(self, op: str) -> HereDocument:
        start = self.pos
        delimiter_word = self._word()
        delimiter = "".join(p.text for p in delimiter_word.parts if isinstance(p, Literal))
        quoted = any(char in delimiter_word.raw for char in "'\"\\")

        newline = self.text.find("\n", self.pos)
        if newline == -1:
            raise self._error(f"here-document {delimiter!r} has no body", start)

        # Several here-documents on one line are read back to back.
        body_start = self._heredoc_resume.get(newline, newline + 1)
        index = body_start
        while True:
            if index >= len(self.text):
                raise self._error(f"unterminated here-document (wanted {delimiter!r})", start)
            end = self.text.find("\n", index)
            line_end = len(self.text) if end == -1 else end
            line = self.text[index:line_end]
            if (line.lstrip("\t") if op == "<<-" else line) == delimiter:
                break
            index = line_end + 1

        self._heredoc_resume[newline] = min(line_end + 1, len(self.text))
        body = self._heredoc_body(body_start, index, quoted)
        return HereDocument(delimiter, body, strip_tabs=op == "<<-", quoted=quoted)

    def _heredoc_body(self, start: int, end: int, quoted: bool) -> Word:
        raw = self.text[start:end]
        if quoted:
            return Word(raw, (Literal(raw),) if raw else (), self._position(start))

        resume = self.pos
        self.pos = start
        parts = self._quoted_parts(stop=None, limit=end)
        if self.pos > end:
            raise self._error("substitution runs past the end of its here-document", start)
        self.pos = resume
        return Word(raw, parts, self._position(start))

    # ──────────────────────────────────────────────
    # Words
    # ──────────────────────────────────────────────

    def _word(self) -> Word:
        start = self.pos
        parts = _Parts()

        while not self._at_end():
            char = self._peek()
            if char in _WORD_BREAK:
                if char in "<>" and self._peek(1) == "(" and self.pos == start:
                    self.pos += 1
                    parts.add(self._command_substitution(kind=char + "(", start=start))
                    continue
                if char == "(" and self.pos > start and self.text[self.pos - 1] in _EXTGLOB_PREFIXES:
                    end = self._matching_paren(self.pos, "extended glob")
                    parts.add_text(self.text[self.pos : end])
                    self.pos = end
                    continue
                break

            if char == "\\":
                following = self._peek(1)
                if following == "\n":
                    self.pos += 2
                    continue
                parts.add_text(following or "\\")
                self.pos += 2 if following else 1
            elif char == "'":
                end = self.text.find("'", self.pos + 1)
                if end == -1:
                    raise self._error("unterminated single quote")
                parts.add_text(self.text[self.pos + 1 : end])
                self.pos = end + 1
            elif char == '"':
                open_pos = self.pos
                self.pos += 1
                for part in self._quoted_parts(stop='"', open_pos=open_pos):
                    parts.add(part)
            elif char == "$":
                parts.add(self._dollar(in_quotes=False))
            elif char == "`":
                parts.add(self._backquote())
            else:
                parts.add_text(char)
                self.pos += 1

        if self.pos == start:
            raise self._error(f"unexpected {self._preview()}")
        return Word(self.text[start : self.pos], parts.done(), self._position(start))

    def _quoted_parts(
        self, stop: str | None, limit: int | None = None, open_pos: int | None = None
    ) -> tuple[Fragment, ...]:
        """Contents of a double-quoted string, or of an unquoted here-document body."""
        limit = len(self.text) if limit is None else limit
        parts = _Parts()
        while True:
            if self.pos >= limit:
                if stop is not None:
                    raise self._error("unterminated double quote", open_pos)
                break
            char = self._peek()
            if char == stop:
                self.pos += 1
                break
            if char == "\\" and self._peek(1) in ("$", "`", '"', "\\", "\n"):
                if self._peek(1) != "\n":
                    parts.add_text(self._peek(1))
                self.pos += 2
            elif char == "$":
                parts.add(self._dollar(in_quotes=True))
            elif char == "`":
                parts.add(self._backquote())
            else:
                parts.add_text(char)
                self.pos += 1
        return parts.done()

    def _dollar(self, in_quotes: bool) -> Fragment:
        start = self.pos
        following = self._peek(1)

        if following == "'" and not in_quotes:
            index = self.pos + 2
            while index < len(self.text) and self.text[index] != "'":
                index += 2 if self.text[index] == "\\" else 1
            if index >= len(self.text):
                raise self._error("unterminated $'...' string")
            self.pos = index + 1
            return Literal(self.text[start + 2 : index])
        if following == '"' and not in_quotes:
            # Locale translation: the quoted string that follows is read normally.
            self.pos += 1
            return Literal("")
        if self._startswith("$(("):
            end = self._matching_paren(self.pos + 1, "arithmetic expansion")
            self.pos = end
            return ArithmeticExpansion(self.text[start:end])
        if following == "(":
            self.pos += 1
            return self._command_substitution(kind="$(", start=start)
        if following == "{":
            return self._parameter_braces()
        if following and (following.isalpha() or following == "_"):
            match = _NAME_RE.match(self.text, self.pos + 1)
            self.pos = match.end()
            return ParameterExpansion(self.text[start : self.pos], match.group(0))
        if following and following in _SPECIAL_PARAMS:
            self.pos += 2
            return ParameterExpansion(self.text[start : self.pos], following)

        self.pos += 1
        return Literal("$")

    def _command_substitution(self, kind: str, start: int) -> CommandSubstitution:
        """Parse from the '(' at the current position; ``start`` marks the span's first char."""
        open_pos = self.pos
        self.pos += 1
        body = self._statements(close_paren=True)
        if self._peek() != ")":
            raise self._error("unterminated command substitution", open_pos)
        self.pos += 1
        return CommandSubstitution(self.text[start : self.pos], body, self._position(start), kind)

    def _parameter_braces(self) -> ParameterExpansion:
        start = self.pos
        self.pos += 2
        substitutions: list[CommandSubstitution] = []

        while True:
            if self._at_end():
                raise self._error("unterminated parameter expansion", start)
            char = self._peek()
            if char == "}":
                self.pos += 1
                break
            if char == "\\":
                self.pos += 2
            elif char == "'":
                end = self.text.find("'", self.pos + 1)
                if end == -1:
                    raise self._error("unterminated single quote")
                self.pos = end + 1
            elif char in ('"', "$", "`"):
                if char == '"':
                    open_pos = self.pos
                    self.pos += 1
                    found = self._quoted_parts(stop='"', open_pos=open_pos)
                elif char == "$":
                    found = (self._dollar(in_quotes=True),)
                else:
                    found = (self._backquote(),)
                for part in found:
                    if isinstance(part, CommandSubstitution):
                        substitutions.append(part)
                    elif isinstance(part, ParameterExpansion):
                        substitutions.extend(part.substitutions)
            else:
                self.pos += 1

        raw = self.text[start : self.pos]
        match = _EXPANSION_NAME_RE.match(raw, 2)
        return ParameterExpansion(raw, match.group(1) if match else "", tuple(substitutions))

    def _backquote(self) -> CommandSubstitution:
        start = self.pos
        index = start + 1
        chars: list[str] = []
        while True:
            if index >= len(self.text):
                raise self._error("unterminated backquote substitution", start)
            char = self.text[index]
            if char == "\\" and self.text[index + 1 : index + 2] in ("$", "`", "\\"):
                chars.append(self.text[index + 1])
                index += 2
                continue
            if char == "`":
                break
            chars.append(char)
            index += 1

        self.pos = index + 1
        inner = _Parser("".join(chars), self.source, self.base + start + 1, self._locate)
        body = inner.parse()
        return CommandSubstitution(self.text[start : self.pos], body, self._position(start), "`")


def parse_recipe(data: bytes | str, source: str = "PKGBUILD") -> Recipe:
    """
    Parse PKGBUILD content into a syntax tree.

    Args:
        data: Raw PKGBUILD bytes (or already decoded text).
        source: Name used in error messages.

    Returns:
        The complete Recipe.

    Raises:
        RecipeParseError: If any part of the script cannot be parsed.
    """
    text = data.decode("utf-8", errors="surrogateescape") if isinstance(data, bytes) else data
    statements = _Parser(text, source).parse()
    recipe = Recipe(statements, source)
    logger.debug(
        f"[PKGBUILD] {source}: {len(statements)} statements, "
        f"{len(recipe.functions())} functions"
    )
    return recipe


# ═══════════════════════════════════════════
# Metadata
# ═══════════════════════════════════════════

SCALAR_FIELDS = ("pkgbase", "pkgver", "pkgrel", "epoch", "pkgdesc", "url")
LIST_FIELDS = ("pkgname", "arch", "license", "source")
DEPENDENCY_FIELDS = ("depends", "makedepends", "checkdepends")


def _word_text(word: Word) -> str:
    literal = word.literal
    return word.raw if literal is None else literal


def recipe_metadata(recipe: Recipe) -> dict:
    """
    Extract package metadata from the recipe's top-level assignments.

    Values that contain expansions are returned as their raw source text.

    Returns:
        Dictionary with the scalar fields (str or None), list fields
        (list[str]), dependency fields and optdepends (list[Dependency]),
        and 'version' (the full version, or None without pkgver).
    """
    values: dict[str, list[str]] = {}
    for assignment in recipe.assignments():
        texts = [_word_text(w) for w in assignment.words]
        if assignment.append:
            values.setdefault(assignment.name, []).extend(texts)
        else:
            values[assignment.name] = texts

    result: dict = {}
    for field in SCALAR_FIELDS:
        result[field] = values[field][0] if values.get(field) else None
    for field in LIST_FIELDS:
        result[field] = values.get(field, [])
    for field in DEPENDENCY_FIELDS:
        result[field] = [d for d in map(parse_dependency, values.get(field, [])) if d]
    result["optdepends"] = [d for d, _ in map(parse_optdepend, values.get("optdepends", [])) if d]

    result["version"] = None
    if result["pkgver"]:
        text = result["pkgver"]
        if result["pkgrel"]:
            text += f"-{result['pkgrel']}"
        if result["epoch"]:
            text = f"{result['epoch']}:{text}"
        result["version"] = parse_version(text)
    return result
