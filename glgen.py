"""Minimal OpenGL header generator.

Scans C/C++ sources for the OpenGL functions and constants they reference and
writes a header holding typedefs for only those symbols, taken from the
Khronos registry headers (glcorearb.h, glext.h), plus optional boilerplate
that loads the entry points at runtime.

Usage:
    python glgen.py src/main.cpp src/render.cpp -gl glcorearb.h \\
        -o opengl.generated.h -i glfwGetFramebufferSize,glfwSwapInterval
"""

import argparse
import os
import re
import sys
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Generic, NamedTuple, TypeVar

T = TypeVar("T")


# ===--- CLI config contracts ---=== #


PLATFORM_ALL = "all"
VALID_PLATFORMS = (PLATFORM_ALL, "win32", "apple", "posix")


@dataclass(frozen=True)
class GenerateConfig:
    registry_files: tuple[Path, ...]
    output: Path
    inputs: tuple[Path, ...]
    ignores: tuple[str, ...] = ()
    prefix: str = ""
    boilerplate: bool = True
    silent: bool = False
    force: bool = False
    platform: str = PLATFORM_ALL


VALID_ERROR_CODES = {
    "MISSING_REGISTRY",
    "MISSING_OUTPUT",
    "MISSING_INPUTS",
    "INVALID_PREFIX",
    "INVALID_IGNORE_NAME",
    "INVALID_PLATFORM",
}
_PREFIX_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_IGNORE_NAME_RE = re.compile(r"^[A-Za-z0-9_#*]+$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


class GenerationError(Exception):
    """Generation cannot produce a meaningful header (no registry text)."""


def split_comma_list(raw_values: object) -> tuple[str, ...]:
    """Flatten repeated comma separated option values, dropping empty items.

    `-gl a.h,b.h -gl c.h` arrives from argparse as ["a.h,b.h", "c.h"] and
    becomes ("a.h", "b.h", "c.h"). Order is preserved, duplicates are kept.
    """
    if raw_values is None:
        return tuple()
    if isinstance(raw_values, str):
        raw_values = [raw_values]
    items: list[str] = []
    for value in raw_values:
        items.extend(part.strip() for part in str(value).split(",") if part.strip())
    return tuple(items)


def validate_prefix(prefix: str | None) -> str:
    if not prefix:
        return ""
    if _PREFIX_RE.match(prefix):
        return prefix
    raise ConfigError(
        "INVALID_PREFIX",
        f"Invalid boilerplate prefix: {prefix}",
        "The prefix is pasted into C identifiers; use letters, digits and underscores.",
    )


def validate_ignore_name(name: str) -> str:
    if _IGNORE_NAME_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_IGNORE_NAME",
        f"Invalid ignored token: {name}",
        "Ignored tokens are matched against identifiers (letters, digits, '_', '#', '*').",
    )


def validate_platform(platform: str | None) -> str:
    if platform is None:
        return PLATFORM_ALL
    if platform in VALID_PLATFORMS:
        return platform
    raise ConfigError(
        "INVALID_PLATFORM",
        f"Unsupported loader platform: {platform}",
        f"Use one of: {', '.join(VALID_PLATFORMS)}.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate an OpenGL header holding only the symbols your code uses"
    )

    parser.add_argument("inputs", nargs="*", type=Path, metavar="INPUT")
    parser.add_argument(
        "-gl", "--registry", action="append", default=None, metavar="REGISTRY"
    )
    parser.add_argument("-o", "--output", type=Path, default=None)
    parser.add_argument("-p", "--prefix", type=str, default="")
    parser.add_argument("-i", "--ignore", action="append", default=None)
    parser.add_argument(
        "-no-b",
        "--no-boilerplate",
        dest="no_boilerplate",
        action="store_true",
        default=False,
    )
    parser.add_argument("-force", "--force", action="store_true", default=False)
    parser.add_argument("-silent", "--silent", action="store_true", default=False)
    parser.add_argument("--platform", type=str, default=PLATFORM_ALL)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    # Inputs may appear before, between or after the options.
    return parser.parse_intermixed_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig:
    registry_files = tuple(Path(p) for p in split_comma_list(args.registry))
    if not registry_files:
        raise ConfigError(
            "MISSING_REGISTRY",
            "At least one registry header is required.",
            "Download glcorearb.h from the Khronos OpenGL registry and pass it with -gl glcorearb.h",
        )

    if args.output is None:
        raise ConfigError(
            "MISSING_OUTPUT",
            "An output header path is required.",
            "Pass the generated header path: -o opengl.generated.h",
        )

    inputs = tuple(Path(p) for p in args.inputs)
    if not inputs:
        raise ConfigError(
            "MISSING_INPUTS",
            "At least one input source file is required.",
            "List the C/C++ files to scan after the options.",
        )

    ignores = tuple(validate_ignore_name(name) for name in split_comma_list(args.ignore))

    return GenerateConfig(
        registry_files=registry_files,
        output=Path(args.output),
        inputs=inputs,
        ignores=ignores,
        prefix=validate_prefix(args.prefix),
        boilerplate=not args.no_boilerplate,
        silent=bool(args.silent),
        force=bool(args.force),
        platform=validate_platform(args.platform),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig:
    return validate_config(parse_args(argv))


# ===--- Diagnostics ---=== #


def warn(message: str) -> None:
    print(f"WARNING: {message}", file=sys.stderr)


def report_error(message: str) -> None:
    print(message, file=sys.stderr)


# ===--- Lexical scanner ---=== #

WHITESPACE = " \t\v\f"
NEWLINES = "\r\n"
_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_#*]+")

HASH_SEED = 1
HASH_PRIME = 0x01000193
HASH_MASK = 0xFFFFFFFF


def symbol_hash(text: str) -> int:
    """32-bit multiply-then-xor hash of the UTF-8 bytes of text.

    Unlike FNV-1 proper the seed is 1, and output ordering depends on these
    exact values.
    """
    value = HASH_SEED
    for byte in text.encode("utf-8"):
        value = (value * HASH_PRIME) & HASH_MASK
        value ^= byte
    return value


class Token(NamedTuple):
    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def hash(self) -> int:
        return symbol_hash(self.text)

    def __bool__(self) -> bool:
        return bool(self.text)


class Tokenizer:
    """Forward-only cursor producing identifier shaped tokens.

    Identifiers are runs of ASCII letters, digits, '_', '#' and '*', so
    `#define` and `*APIENTRY` come out as single tokens. Everything else is
    a separator. There is no notion of comments or string literals.
    """

    def __init__(self, text: str, pos: int = 0):
        self.text = text
        self.pos = pos

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def next_token(self) -> Token:
        match = _IDENTIFIER_RE.search(self.text, self.pos)
        if match is None:
            self.pos = len(self.text)
            return Token("", self.pos)
        self.pos = match.end()
        return Token(match.group(), match.start())

    def next_registry_token(self) -> Token:
        """Like next_token, but keeps a trailing ` *` with the token.

        `void *APIENTRY` yields `void *` then `APIENTRY`, so pointer return
        types survive in the return type span.
        """
        token = self.next_token()
        if not token:
            return token
        text = self.text
        pos = self.pos
        if pos + 1 < len(text) and text[pos] in WHITESPACE and text[pos + 1] == "*":
            self.pos = pos + 2
            return Token(text[token.start : self.pos], token.start)
        return token

    def peek_after_whitespace(self) -> str:
        """Next character on the current line after inline whitespace, or ''."""
        pos = self.pos
        text = self.text
        while pos < len(text) and text[pos] in WHITESPACE:
            pos += 1
        if pos >= len(text) or text[pos] in NEWLINES:
            return ""
        return text[pos]

    def advance_to_end_of_line(self) -> int:
        text = self.text
        pos = self.pos
        while pos < len(text) and text[pos] not in NEWLINES:
            pos += 1
        self.pos = pos
        return pos

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            if not token:
                return
            yield token


# ===--- Symbol table ---=== #

TOKEN_TABLE_SIZE = 8192


class InsertResult(Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"


class SymbolTableFullError(RuntimeError):
    pass


class _Slot(NamedTuple):
    hash: int
    name: str
    payload: object


class SymbolTable(Generic[T]):
    """Open addressing hash map from symbol name to payload.

    The 32-bit symbol hash selects the starting bucket and probing is linear.
    Entries are matched by name, so two names with the same hash are kept
    apart. There is no deletion.

    A growable table doubles its capacity before it gets more than half
    full. A fixed table raises SymbolTableFullError once every slot is used.
    """

    def __init__(
        self,
        capacity: int = TOKEN_TABLE_SIZE,
        *,
        growable: bool = True,
        hasher: Callable[[str], int] = symbol_hash,
    ):
        if capacity <= 0 or capacity & (capacity - 1):
            raise ValueError(f"Symbol table capacity must be a power of two: {capacity}")
        self._slots: list[_Slot | None] = [None] * capacity
        self._count = 0
        self._growable = growable
        self._hasher = hasher

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return self._count

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._find(name) is not None

    def _probe(self, hash_value: int) -> Iterator[int]:
        mask = len(self._slots) - 1
        index = hash_value & mask
        for _ in range(len(self._slots)):
            yield index
            index = (index + 1) & mask

    def _find(self, name: str) -> _Slot | None:
        hash_value = self._hasher(name)
        for index in self._probe(hash_value):
            slot = self._slots[index]
            if slot is None:
                return None
            if slot.hash == hash_value and slot.name == name:
                return slot
        return None

    def get(self, name: str) -> T | None:
        slot = self._find(name)
        return None if slot is None else slot.payload

    def insert(self, name: str, payload: T) -> InsertResult:
        if self._growable and (self._count + 1) * 2 > len(self._slots):
            self._resize(len(self._slots) * 2)

        hash_value = self._hasher(name)
        for index in self._probe(hash_value):
            slot = self._slots[index]
            if slot is None:
                self._slots[index] = _Slot(hash_value, name, payload)
                self._count += 1
                return InsertResult.INSERTED
            if slot.hash == hash_value and slot.name == name:
                return InsertResult.DUPLICATE
        raise SymbolTableFullError(
            f"Symbol table full ({len(self._slots)} slots): cannot insert {name}"
        )

    def _resize(self, capacity: int) -> None:
        old_slots = self._slots
        self._slots = [None] * capacity
        mask = capacity - 1
        for slot in old_slots:
            if slot is None:
                continue
            index = slot.hash & mask
            while self._slots[index] is not None:
                index = (index + 1) & mask
            self._slots[index] = slot

    def items(self) -> Iterator[tuple[str, T]]:
        """(name, payload) pairs in slot order."""
        for slot in self._slots:
            if slot is not None:
                yield slot.name, slot.payload

    def values(self) -> Iterator[T]:
        for _name, payload in self.items():
            yield payload


# ===--- Registry model ---=== #

KIND_FUNCTION = "function"
KIND_MACRO = "macro"


@dataclass(frozen=True)
class RegistrySymbol:
    """One declaration found in a registry header.

    Attributes:
        name: Function or macro name, e.g. "glClear" or "GL_TRIANGLES".
        kind: KIND_FUNCTION or KIND_MACRO.
        line: Declaration text from `GLAPI` / `#define` to end of line.
        return_type: Function return type, e.g. "const GLubyte *". Empty
            for macros.
        parameters: Text after the function name up to end of line, e.g.
            "(GLbitfield mask);". Empty for macros.
    """

    name: str
    kind: str
    line: str
    return_type: str = ""
    parameters: str = ""

    @property
    def hash(self) -> int:
        return symbol_hash(self.name)


class MatchedSymbol(NamedTuple):
    name: str
    hash: int

    @classmethod
    def from_name(cls, name: str) -> "MatchedSymbol":
        return cls(name, symbol_hash(name))


@dataclass
class Registry:
    symbols: SymbolTable[RegistrySymbol] = field(default_factory=SymbolTable)
    function_count: int = 0
    macro_count: int = 0
    duplicate_count: int = 0

    def __len__(self) -> int:
        return len(self.symbols)

    def __contains__(self, name: object) -> bool:
        return name in self.symbols

    def get(self, name: str) -> RegistrySymbol | None:
        return self.symbols.get(name)

    def add(self, symbol: RegistrySymbol) -> InsertResult:
        result = self.symbols.insert(symbol.name, symbol)
        if result is InsertResult.DUPLICATE:
            self.duplicate_count += 1
        elif symbol.kind == KIND_FUNCTION:
            self.function_count += 1
        else:
            self.macro_count += 1
        return result


# ===--- Registry parser ---=== #

GLAPI_TOKEN = "GLAPI"
DEFINE_TOKEN = "#define"


def read_text_file(path: Path) -> str | None:
    """Whole file as text, or None (after a diagnostic) if missing or empty."""
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        report_error(f"Couldn't open file: {path}")
        return None
    if not text:
        report_error(f"File is empty: {path}")
        return None
    return text


def read_registry_text(paths: Iterable[Path]) -> str:
    """Concatenate registry headers, separated by a blank line."""
    chunks = []
    for path in paths:
        text = read_text_file(path)
        if text is not None:
            chunks.append(text)
    return "\n\n".join(chunks)


def _parse_function_declaration(
    tokenizer: Tokenizer, glapi: Token
) -> RegistrySymbol | None:
    text = tokenizer.text
    return_start = tokenizer.pos
    return_token = tokenizer.next_registry_token()
    if return_token.text == "const":
        tokenizer.next_registry_token()
    return_type = text[return_start : tokenizer.pos].strip()

    # `GLAPI void APIENTRY glClear (...)`: skip the calling convention,
    # unless the registry omits it and the name is already followed by '('.
    name_token = tokenizer.next_registry_token()
    if tokenizer.peek_after_whitespace() != "(":
        name_token = tokenizer.next_registry_token()
    if not name_token:
        return None

    params_start = tokenizer.pos
    line_end = tokenizer.advance_to_end_of_line()
    return RegistrySymbol(
        name=name_token.text,
        kind=KIND_FUNCTION,
        line=text[glapi.start : line_end],
        return_type=return_type,
        parameters=text[params_start:line_end].strip(),
    )


def _parse_macro_declaration(
    tokenizer: Tokenizer, define: Token
) -> RegistrySymbol | None:
    name_token = tokenizer.next_registry_token()
    if not name_token:
        return None
    line_end = tokenizer.advance_to_end_of_line()
    return RegistrySymbol(
        name=name_token.text,
        kind=KIND_MACRO,
        line=tokenizer.text[define.start : line_end],
    )


def parse_registry(text: str, registry: Registry | None = None) -> Registry:
    """Collect every `GLAPI` function and `#define` macro found in text.

    The first declaration of a name wins; later ones only bump
    duplicate_count. Lines matching neither form are skipped.
    """
    if registry is None:
        registry = Registry()
    tokenizer = Tokenizer(text)
    while not tokenizer.at_end:
        token = tokenizer.next_registry_token()
        if not token:
            break
        symbol = None
        if token.text == GLAPI_TOKEN:
            symbol = _parse_function_declaration(tokenizer, token)
        elif token.text.startswith(DEFINE_TOKEN):
            symbol = _parse_macro_declaration(tokenizer, token)
        if symbol is not None:
            registry.add(symbol)
    return registry


def load_registry(paths: Iterable[Path]) -> Registry:
    text = read_registry_text(paths)
    if not text:
        raise GenerationError("No registry declarations could be read.")
    return parse_registry(text)


# ===--- Source scanner / cross-referencer ---=== #

FUNCTION_PREFIX = "gl"
MACRO_PREFIX = "GL_"
ALWAYS_FUNCTIONS = ("glGetIntegerv",)
ALWAYS_MACROS = ("GL_MAJOR_VERSION", "GL_MINOR_VERSION")


class UnresolvedSymbol(NamedTuple):
    name: str
    path: Path | None


@dataclass
class ScanResult:
    """Symbols referenced by the scanned sources.

    Attributes:
        functions: Accepted `glXxx` names, including ignored ones.
        macros: Accepted `GL_XXX` names, including ignored ones.
        unresolved: Candidates found in neither the registry nor the ignore
            list, one entry per name, in discovery order.
        files_scanned: Inputs read and scanned.
        files_failed: Inputs that were missing, unreadable or empty.
    """

    functions: SymbolTable[MatchedSymbol] = field(default_factory=SymbolTable)
    macros: SymbolTable[MatchedSymbol] = field(default_factory=SymbolTable)
    unresolved: list[UnresolvedSymbol] = field(default_factory=list)
    files_scanned: int = 0
    files_failed: int = 0

    def unresolved_names(self) -> tuple[str, ...]:
        return tuple(entry.name for entry in self.unresolved)


def new_scan_result() -> ScanResult:
    """Empty result with the symbols OpenGLInit always needs."""
    result = ScanResult()
    for name in ALWAYS_MACROS:
        result.macros.insert(name, MatchedSymbol.from_name(name))
    for name in ALWAYS_FUNCTIONS:
        result.functions.insert(name, MatchedSymbol.from_name(name))
    return result


def is_function_candidate(text: str) -> bool:
    return len(text) > 2 and text.startswith(FUNCTION_PREFIX) and "A" <= text[2] <= "Z"


def is_macro_candidate(text: str) -> bool:
    return text.startswith(MACRO_PREFIX)


def _record_candidate(
    name: str,
    matched: SymbolTable[MatchedSymbol],
    registry: Registry,
    ignores: frozenset[str],
    result: ScanResult,
    path: Path | None,
) -> None:
    if name in matched:
        return
    if name in registry or name in ignores:
        matched.insert(name, MatchedSymbol.from_name(name))
        return
    if name in result.unresolved_names():
        return
    warn(f"Token not found in header: {name}")
    result.unresolved.append(UnresolvedSymbol(name, path))


def scan_source_text(
    text: str,
    registry: Registry,
    ignores: Iterable[str],
    result: ScanResult,
    path: Path | None = None,
) -> ScanResult:
    ignore_set = frozenset(ignores)
    for token in Tokenizer(text):
        name = token.text
        if is_function_candidate(name):
            _record_candidate(name, result.functions, registry, ignore_set, result, path)
        if is_macro_candidate(name):
            _record_candidate(name, result.macros, registry, ignore_set, result, path)
    return result


def scan_source_file(
    path: Path, registry: Registry, ignores: Iterable[str], result: ScanResult
) -> bool:
    text = read_text_file(path)
    if text is None:
        result.files_failed += 1
        return False
    scan_source_text(text, registry, ignores, result, path)
    result.files_scanned += 1
    return True


def cross_reference(
    paths: Iterable[Path], registry: Registry, ignores: Iterable[str] = ()
) -> ScanResult:
    ignores = tuple(ignores)
    result = new_scan_result()
    for path in paths:
        scan_source_file(path, registry, ignores, result)
    return result


# ===--- Header emitter ---=== #

INCLUDE_GUARD = "INCLUDE_OPENGL_GENERATED_H"
PROC_PREFIX = "GEN_"

BASELINE_TYPEDEFS: tuple[str, ...] = (
    "#ifndef APIENTRY",
    "#define APIENTRY",
    "#endif",
    "#ifndef APIENTRYP",
    "#define APIENTRYP APIENTRY *",
    "#endif",
    "#ifndef GLAPI",
    "#define GLAPI extern",
    "#endif",
    "",
    "typedef void GLvoid;",
    "typedef unsigned int GLenum;",
    "typedef float GLfloat;",
    "typedef int GLint;",
    "typedef int GLsizei;",
    "typedef unsigned int GLbitfield;",
    "typedef double GLdouble;",
    "typedef unsigned int GLuint;",
    "typedef unsigned char GLboolean;",
    "typedef unsigned char GLubyte;",
    "typedef char GLchar;",
    "typedef short GLshort;",
    "typedef signed char GLbyte;",
    "typedef unsigned short GLushort;",
    "typedef ptrdiff_t GLsizeiptr;",
    "typedef ptrdiff_t GLintptr;",
    "typedef float GLclampf;",
    "typedef double GLclampd;",
    "typedef unsigned short GLhalf;",
    "",
)

DEBUG_PROC_TYPEDEF = (
    "typedef void (APIENTRY *GLDEBUGPROC)(GLenum source,GLenum type,GLuint id,"
    "GLenum severity,GLsizei length,const GLchar *message,const void *userParam);"
)


def sort_matched(table: SymbolTable[MatchedSymbol]) -> list[MatchedSymbol]:
    """Matched symbols by descending hash.

    The order depends only on the names, never on which file mentioned them
    first, so unchanged inputs give a byte identical header.
    """
    return sorted(table.values(), key=lambda s: (-s.hash, s.name))


def proc_type_name(name: str) -> str:
    return f"PFN{name.upper()}PROC"


def _resolved(
    symbols: Iterable[MatchedSymbol], registry: Registry
) -> Iterator[RegistrySymbol]:
    for matched in symbols:
        declaration = registry.get(matched.name)
        if declaration is not None:
            yield declaration


def format_preamble(timestamp: int) -> list[str]:
    return [
        f"#ifndef {INCLUDE_GUARD}",
        f"#define {INCLUDE_GUARD}",
        "",
        "// NOTE: This file is generated automatically. Do not edit.",
        f"// @GENERATED: {timestamp}",
        "",
    ]


def format_version_block(prefix: str) -> list[str]:
    return [
        f"typedef struct {prefix}OpenGLVersion",
        "{",
        "  int Major;",
        "  int Minor;",
        f"}} {prefix}OpenGLVersion;",
        "// Call this function to initialize OpenGL.",
        "// Example:",
        "//",
        f"//    {prefix}OpenGLVersion Version;",
        f"//    {prefix}OpenGLInit(&Version);",
        "//    if(Version.Major < 3)",
        "//    {",
        '//       printf("OpenGL 3 or above required.\\n");',
        "//       return 0;",
        "//    }",
        "//",
        f"static void {prefix}OpenGLInit({prefix}OpenGLVersion* Version);",
        "",
        "",
    ]


def format_macro_lines(
    macros: Iterable[MatchedSymbol], registry: Registry
) -> list[str]:
    return [declaration.line for declaration in _resolved(macros, registry)]


def format_function_typedef(declaration: RegistrySymbol) -> str:
    return (
        f"typedef {declaration.return_type} "
        f"(APIENTRYP {proc_type_name(declaration.name)}) {declaration.parameters}"
    )


def format_function_typedefs(
    functions: Iterable[MatchedSymbol], registry: Registry
) -> list[str]:
    return [format_function_typedef(d) for d in _resolved(functions, registry)]


def format_redefinitions(
    functions: Iterable[MatchedSymbol], registry: Registry
) -> list[str]:
    return [
        f"#define {d.name} {PROC_PREFIX}{d.name}" for d in _resolved(functions, registry)
    ]


def format_function_pointers(
    functions: Iterable[MatchedSymbol], registry: Registry
) -> list[str]:
    return [
        f"{proc_type_name(d.name)} {PROC_PREFIX}{d.name};"
        for d in _resolved(functions, registry)
    ]


# ===--- Dynamic library loaders ---=== #


@dataclass(frozen=True)
class LoaderBackend:
    """How one platform family loads libGL and resolves entry points.

    Body lines are C statements without indentation. `{p}` is replaced by
    the boilerplate prefix and `{gp}` by the function pointer prefix.

    Attributes:
        name: Platform name accepted by --platform.
        condition: Preprocessor condition selecting this backend inside the
            `all` chain, or None for the fallback `#else` branch.
        preamble: Includes and file-scope state.
        load: Body of <prefix>LoadOpenGL().
        unload: Body of <prefix>UnloadOpenGL().
        resolve: Body of <prefix>OpenGLGetProc(const char *proc), which must
            return a <prefix>OpenGLProc.
    """

    name: str
    condition: str | None
    preamble: tuple[str, ...]
    load: tuple[str, ...]
    unload: tuple[str, ...]
    resolve: tuple[str, ...]

    def render(self, prefix: str) -> list[str]:
        def fill(line: str) -> str:
            return line.replace("{gp}", PROC_PREFIX).replace("{p}", prefix)

        lines = [fill(line) for line in self.preamble]
        lines.append(f"static void {prefix}LoadOpenGL()")
        lines.append("{")
        lines.extend(f"  {fill(line)}" for line in self.load)
        lines.append("}")
        lines.append(f"static void {prefix}UnloadOpenGL()")
        lines.append("{")
        lines.extend(f"  {fill(line)}" for line in self.unload)
        lines.append("}")
        lines.append(f"static {prefix}OpenGLProc {prefix}OpenGLGetProc(const char *proc)")
        lines.append("{")
        lines.extend(f"  {fill(line)}" for line in self.resolve)
        lines.append("}")
        return lines


WIN32_LOADER = LoaderBackend(
    name="win32",
    condition="#ifdef _WIN32",
    preamble=("static HMODULE {p}OpenGLHandle;",),
    load=('{p}OpenGLHandle = LoadLibraryA("opengl32.dll");',),
    unload=("FreeLibrary({p}OpenGLHandle);",),
    resolve=(
        "{p}OpenGLProc Result = ({p}OpenGLProc)wglGetProcAddress(proc);",
        "if (!Result)",
        "  Result = ({p}OpenGLProc)GetProcAddress({p}OpenGLHandle, proc);",
        "return Result;",
    ),
)

APPLE_LOADER = LoaderBackend(
    name="apple",
    condition="#elif defined(__APPLE__) || defined(__APPLE_CC__)",
    preamble=(
        "#include <Carbon/Carbon.h>",
        "",
        "static CFBundleRef {gp}Bundle;",
        "static CFURLRef {gp}BundleURL;",
        "",
    ),
    load=(
        "{gp}BundleURL = CFURLCreateWithFileSystemPath(kCFAllocatorDefault,",
        '  CFSTR("/System/Library/Frameworks/OpenGL.framework"),',
        "  kCFURLPOSIXPathStyle, 1);",
        "{gp}Bundle = CFBundleCreate(kCFAllocatorDefault, {gp}BundleURL);",
    ),
    unload=(
        "CFRelease({gp}Bundle);",
        "CFRelease({gp}BundleURL);",
    ),
    resolve=(
        "CFStringRef ProcName = CFStringCreateWithCString(kCFAllocatorDefault, proc,",
        "  kCFStringEncodingASCII);",
        "{p}OpenGLProc Result = ({p}OpenGLProc) CFBundleGetFunctionPointerForName({gp}Bundle, ProcName);",
        "CFRelease(ProcName);",
        "return Result;",
    ),
)

POSIX_LOADER = LoaderBackend(
    name="posix",
    condition=None,
    preamble=(
        "#include <dlfcn.h>",
        "",
        "static void *{p}OpenGLHandle;",
        "typedef void (*__GLXextproc)(void);",
        "typedef __GLXextproc (* PFNGLXGETPROCADDRESSPROC) (const GLubyte *procName);",
        "static PFNGLXGETPROCADDRESSPROC glx_get_proc_address;",
    ),
    load=(
        '{p}OpenGLHandle = dlopen("libGL.so.1", RTLD_LAZY | RTLD_GLOBAL);',
        "glx_get_proc_address = (PFNGLXGETPROCADDRESSPROC) "
        'dlsym({p}OpenGLHandle, "glXGetProcAddressARB");',
    ),
    unload=("dlclose({p}OpenGLHandle);",),
    resolve=(
        "{p}OpenGLProc Result = ({p}OpenGLProc) glx_get_proc_address((const GLubyte *) proc);",
        "if (!Result)",
        "  Result = ({p}OpenGLProc) dlsym({p}OpenGLHandle, proc);",
        "return Result;",
    ),
)

LOADER_BACKENDS: dict[str, LoaderBackend] = {
    backend.name: backend for backend in (WIN32_LOADER, APPLE_LOADER, POSIX_LOADER)
}
"""Backends in `#ifdef` chain order; the last one is the `#else` fallback."""


def format_loader_section(prefix: str, platform: str = PLATFORM_ALL) -> list[str]:
    """Proc typedef plus load/resolve/unload for one or all platforms.

    `all` chains every backend under `#ifdef`/`#elif`/`#else`; a single
    platform name emits that backend alone, without conditionals.
    """
    lines = [f"typedef void (*{prefix}OpenGLProc)(void);", ""]
    if platform != PLATFORM_ALL:
        lines.extend(LOADER_BACKENDS[validate_platform(platform)].render(prefix))
        return lines

    for backend in LOADER_BACKENDS.values():
        lines.append(backend.condition if backend.condition is not None else "#else")
        lines.extend(backend.render(prefix))
    lines.append("#endif")
    return lines


def format_init_function(
    functions: Iterable[MatchedSymbol], registry: Registry, prefix: str
) -> list[str]:
    lines = [
        f"static void {prefix}OpenGLInit({prefix}OpenGLVersion* Version)",
        "{",
        f"  {prefix}LoadOpenGL();",
        "",
    ]
    for d in _resolved(functions, registry):
        lines.append(
            f"  {PROC_PREFIX}{d.name} = ({proc_type_name(d.name)})"
            f'{prefix}OpenGLGetProc("{d.name}");'
        )
    lines.extend(
        [
            "",
            f"  {prefix}UnloadOpenGL();",
            "",
            "  Version->Major = 0;",
            "  Version->Minor = 0;",
            "  if (glGetIntegerv)",
            "  {",
            "    glGetIntegerv(GL_MAJOR_VERSION, &Version->Major);",
            "    glGetIntegerv(GL_MINOR_VERSION, &Version->Minor);",
            "  }",
            "}",
        ]
    )
    return lines


@dataclass(frozen=True)
class HeaderOptions:
    """Rendering switches for assemble_header.

    Attributes:
        timestamp: Value of the `@GENERATED` comment.
        prefix: Prepended to OpenGLVersion, OpenGLInit and the loader names.
        boilerplate: Emit the redefinitions, function pointers, loader and
            init function.
        platform: Loader platform, see format_loader_section.
    """

    timestamp: int = 0
    prefix: str = ""
    boilerplate: bool = True
    platform: str = PLATFORM_ALL


def assemble_header(
    registry: Registry, scan: ScanResult, options: HeaderOptions
) -> str:
    """Render the generated header.

    Returns:
        Complete header text ending with exactly one newline.
    """
    macros = sort_matched(scan.macros)
    functions = sort_matched(scan.functions)

    lines = format_preamble(options.timestamp)
    if options.boilerplate:
        lines.extend(format_version_block(options.prefix))
    lines.extend(BASELINE_TYPEDEFS)
    lines.extend(format_macro_lines(macros, registry))
    lines.extend(["", ""])
    lines.append(DEBUG_PROC_TYPEDEF)
    lines.extend(format_function_typedefs(functions, registry))

    if options.boilerplate:
        lines.extend(["", ""])
        lines.extend(format_redefinitions(functions, registry))
        lines.extend(["", ""])
        lines.extend(format_function_pointers(functions, registry))
        lines.extend(["", ""])
        lines.extend(format_loader_section(options.prefix, options.platform))
        lines.extend(["", ""])
        lines.extend(format_init_function(functions, registry, options.prefix))

    lines.append("")
    lines.append(f"#endif // {INCLUDE_GUARD}")
    return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class FileWriteResult:
    path: Path
    line_count: int
    byte_count: int


def write_header(path: Path, content: str) -> FileWriteResult:
    """Write content to path, creating parent directories.

    Raises:
        OSError: Propagated directly if the filesystem write fails.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    path.write_bytes(data)
    return FileWriteResult(
        path=path.resolve(),
        line_count=content.count("\n"),
        byte_count=len(data),
    )


# ===--- Staleness check ---=== #


def get_last_write_time(path: Path) -> int:
    """Modification time in whole seconds, 0 if the file does not exist."""
    try:
        return int(os.stat(path).st_mtime)
    except OSError:
        return 0


def newest_write_time(paths: Iterable[Path]) -> int:
    return max((get_last_write_time(p) for p in paths), default=0)


def needs_regeneration(config: GenerateConfig) -> bool:
    if config.force:
        return True
    newest = newest_write_time((*config.inputs, *config.registry_files))
    return newest > get_last_write_time(config.output)


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation run, consumed by the summary report.

    Attributes:
        file: Write result for the generated header.
        function_count: Function typedefs emitted.
        macro_count: Macro lines emitted.
        registry_count: Distinct symbols parsed from the registry.
        ignored: Accepted names that came from the ignore list.
        unresolved: Candidates dropped with a warning, in discovery order.
        files_failed: Inputs that could not be read.
    """

    file: FileWriteResult
    function_count: int
    macro_count: int
    registry_count: int
    ignored: tuple[str, ...]
    unresolved: tuple[str, ...]
    files_failed: int = 0


def run_generate(config: GenerateConfig) -> GenerationResult | None:
    """Generate config.output unless it is already newer than every input.

    Returns:
        GenerationResult, or None when the header was up to date.

    Raises:
        GenerationError: None of the registry files could be read.
        OSError: Output write failure.
        SymbolTableFullError: Only for fixed-capacity tables.
    """
    if not needs_regeneration(config):
        if not config.silent:
            print(f"Up to date: {config.output}")
        return None

    registry = load_registry(config.registry_files)
    scan = cross_reference(config.inputs, registry, config.ignores)

    options = HeaderOptions(
        timestamp=newest_write_time((*config.inputs, *config.registry_files)),
        prefix=config.prefix,
        boilerplate=config.boilerplate,
        platform=config.platform,
    )
    content = assemble_header(registry, scan, options)
    written = write_header(config.output, content)

    emitted_functions = [s for s in scan.functions.values() if s.name in registry]
    emitted_macros = [s for s in scan.macros.values() if s.name in registry]
    ignored = sorted(
        s.name
        for table in (scan.functions, scan.macros)
        for s in table.values()
        if s.name not in registry
    )

    result = GenerationResult(
        file=written,
        function_count=len(emitted_functions),
        macro_count=len(emitted_macros),
        registry_count=len(registry),
        ignored=tuple(ignored),
        unresolved=scan.unresolved_names(),
        files_failed=scan.files_failed,
    )
    if not config.silent:
        print_generation_summary(result)
    return result


# ===--- Summary report ---=== #


def format_generation_summary(result: GenerationResult) -> str:
    lines = [
        f"Completed! {result.function_count} functions - "
        f"{result.macro_count} defines - {result.registry_count} registry symbols"
    ]
    if result.ignored:
        lines.append(f"  Ignored:    {len(result.ignored)} ({', '.join(result.ignored)})")
    if result.unresolved:
        lines.append(
            f"  Unresolved: {len(result.unresolved)} ({', '.join(result.unresolved)})"
        )
    if result.files_failed:
        lines.append(f"  Unreadable: {result.files_failed} input files")
    lines.append(f"  Output:     {result.file.path} ({result.file.line_count:,} lines)")
    return "\n".join(lines) + "\n"


def print_generation_summary(result: GenerationResult) -> None:
    print(format_generation_summary(result), end="")


# ===--- Main generation ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        report_error(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            report_error(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        run_generate(config)
    except (OSError, GenerationError) as err:
        report_error(f"Error: {err}")
        raise SystemExit(1) from err
    except (RuntimeError, ValueError) as err:
        report_error(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
